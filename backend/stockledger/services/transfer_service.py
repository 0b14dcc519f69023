# Overview: Stock transfer lifecycle between two stores; Pending -> Completed moves stock exactly once.

from __future__ import annotations

from dataclasses import replace

from flask import current_app

from ..errors import DocumentNotFound, InsufficientStock, InvalidStatusTransition, ValidationError
from ..extensions import db
from ..kinds import DocumentKind
from ..models import StockTransfer
from ..models.stock import (
    TRANSFER_STATUS_CANCELLED,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUSES,
)
from ..time_utils import utcnow
from ..validation import coerce_choice, coerce_int, coerce_money, coerce_text, require_mapping
from . import events, lookups, stock_store
from .concurrency import lock_for_update, run_in_transaction
from .directives import transfer_directives, transfer_reversal
from .paging import paginate

"""
Transfer invariants:
- from_store_id != to_store_id
- Completing decreases the source record and increases the destination
  record by the same quantity (conservation); a short source raises
  InsufficientStock and nothing moves.
- The destination takes the source record's unit cost.
- Completed and Cancelled are terminal.
"""

KIND = DocumentKind.STOCK_TRANSFER

_TRANSITIONS = {
    TRANSFER_STATUS_PENDING: {TRANSFER_STATUS_COMPLETED, TRANSFER_STATUS_CANCELLED},
    TRANSFER_STATUS_COMPLETED: set(),
    TRANSFER_STATUS_CANCELLED: set(),
}

_EDITABLE_FIELDS = ("product_id", "from_store_id", "to_store_id", "batch_id", "quantity", "transfer_value", "notes")


def _load(transfer_id, *, lock: bool = False) -> StockTransfer:
    query = db.session.query(StockTransfer).filter(
        StockTransfer.id == transfer_id,
        StockTransfer.deleted_at.is_(None),
    )
    if lock:
        query = lock_for_update(query)
    transfer = query.first()
    if transfer is None:
        raise DocumentNotFound(f"Stock transfer {transfer_id} not found", details={"id": transfer_id})
    return transfer


def _assign(transfer: StockTransfer, data: dict, *, creating: bool) -> None:
    def supplied(field):
        return creating or field in data

    if supplied("product_id"):
        transfer.product_id = lookups.get_product(data.get("product_id")).id
    for field in ("from_store_id", "to_store_id"):
        if supplied(field):
            store = lookups.get_store(data.get(field), field=field)
            if store is None:
                raise ValidationError(f"{field} is required", details={"field": field})
            setattr(transfer, field, store.id)
    if supplied("batch_id"):
        batch = lookups.get_batch(data.get("batch_id"))
        transfer.batch_id = batch.id if batch is not None else None
    if supplied("quantity"):
        transfer.quantity = coerce_int(data.get("quantity"), "quantity", required=True, positive=True)
    if supplied("transfer_value"):
        transfer.transfer_value = coerce_money(data.get("transfer_value"), "transfer_value", default=None)
    if supplied("notes"):
        transfer.notes = coerce_text(data.get("notes"), "notes")

    if transfer.from_store_id == transfer.to_store_id:
        raise ValidationError(
            "Cannot transfer to the same store",
            details={"from_store_id": transfer.from_store_id, "to_store_id": transfer.to_store_id},
        )


def _complete(transfer: StockTransfer) -> None:
    source = stock_store.get_or_none(transfer.product_id, transfer.from_store_id, transfer.batch_id, lock=True)
    available = source.quantity if source is not None else 0
    if available < transfer.quantity:
        raise InsufficientStock(
            "Insufficient stock at the source store",
            details={
                "product_id": transfer.product_id,
                "store_id": transfer.from_store_id,
                "requested": transfer.quantity,
                "available": available,
            },
        )

    out_directive, in_directive = transfer_directives(transfer, unit_cost=source.unit_cost)
    from_record, _ = stock_store.apply(
        replace(out_directive, stock_id=source.id), document_kind=KIND, document_id=transfer.id
    )
    to_record, _ = stock_store.apply(in_directive, document_kind=KIND, document_id=transfer.id)
    transfer.from_stock_id = from_record.id
    transfer.to_stock_id = to_record.id
    transfer.completed_at = utcnow()


def _reverse(transfer: StockTransfer) -> None:
    """Take back from the destination, then return exactly what was taken to the source."""
    directives = transfer_reversal(transfer)
    taken_back = transfer.quantity
    for directive in directives:
        if directive.delta < 0:
            _, taken_back = stock_store.apply(
                directive, document_kind=KIND, document_id=transfer.id, is_reversal=True
            )
        elif taken_back:
            stock_store.apply(
                replace(directive, delta=taken_back), document_kind=KIND, document_id=transfer.id, is_reversal=True
            )


def _transition(transfer: StockTransfer, new_status: str) -> None:
    if new_status not in _TRANSITIONS[transfer.status]:
        current_app.logger.warning(
            "Rejected stock transfer %s transition %s -> %s", transfer.id, transfer.status, new_status
        )
        raise InvalidStatusTransition(
            f"Cannot change stock transfer from {transfer.status} to {new_status}",
            details={"id": transfer.id, "from": transfer.status, "to": new_status},
        )
    if new_status == TRANSFER_STATUS_COMPLETED:
        _complete(transfer)
    transfer.status = new_status


def _notify(event: str, transfer: StockTransfer) -> None:
    events.publish(f"{KIND.value}.{event}", KIND.value, transfer.id, transfer.to_dict)


def create_transfer(data: dict, actor_user_id: int | None = None) -> StockTransfer:
    """Record a transfer as Pending, or complete it at once when status=Completed."""
    data = require_mapping(data or {}, "transfer")
    status = coerce_choice(data.get("status"), "status", TRANSFER_STATUSES, default=TRANSFER_STATUS_PENDING)

    def _op():
        transfer = StockTransfer(
            status=TRANSFER_STATUS_PENDING,
            created_by=actor_user_id,
            updated_by=actor_user_id,
        )
        _assign(transfer, data, creating=True)
        db.session.add(transfer)
        db.session.flush()
        if status != TRANSFER_STATUS_PENDING:
            _transition(transfer, status)
        return transfer

    transfer = run_in_transaction(_op)
    current_app.logger.info(
        "Created stock transfer %s: product %s x%d store %s -> %s (%s)",
        transfer.id, transfer.product_id, transfer.quantity,
        transfer.from_store_id, transfer.to_store_id, transfer.status,
    )
    _notify("created", transfer)
    return transfer


def update_transfer(transfer_id: int, data: dict, actor_user_id: int | None = None) -> StockTransfer:
    data = require_mapping(data or {}, "transfer")
    if "status" in data:
        raise ValidationError("use the status endpoint to change status", details={"field": "status"})
    unknown = set(data) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError("unknown fields", details={"fields": sorted(unknown)})

    def _op():
        transfer = _load(transfer_id, lock=True)
        if transfer.status != TRANSFER_STATUS_PENDING:
            raise InvalidStatusTransition(
                f"Only Pending transfers can be edited (status is {transfer.status})",
                details={"id": transfer.id, "status": transfer.status},
            )
        _assign(transfer, data, creating=False)
        transfer.updated_by = actor_user_id
        return transfer

    transfer = run_in_transaction(_op)
    current_app.logger.info("Updated stock transfer %s", transfer.id)
    _notify("updated", transfer)
    return transfer


def set_transfer_status(transfer_id: int, status: str, actor_user_id: int | None = None) -> StockTransfer:
    status = coerce_choice(status, "status", TRANSFER_STATUSES)

    def _op():
        transfer = _load(transfer_id, lock=True)
        _transition(transfer, status)
        transfer.updated_by = actor_user_id
        return transfer

    transfer = run_in_transaction(_op)
    current_app.logger.info("Stock transfer %s is now %s", transfer.id, transfer.status)
    _notify("status_changed", transfer)
    return transfer


def delete_transfer(transfer_id: int, actor_user_id: int | None = None) -> StockTransfer:
    """Soft-delete; a Completed transfer is moved back first."""

    def _op():
        transfer = _load(transfer_id, lock=True)
        if transfer.status == TRANSFER_STATUS_COMPLETED:
            _reverse(transfer)
        transfer.deleted_at = utcnow()
        transfer.updated_by = actor_user_id
        return transfer

    transfer = run_in_transaction(_op)
    current_app.logger.info("Deleted stock transfer %s", transfer.id)
    _notify("deleted", transfer)
    return transfer


def get_transfer(transfer_id: int) -> StockTransfer:
    return _load(transfer_id)


def list_transfers(page: int | None = None, per_page: int | None = None, store_id: int | None = None, status: str | None = None) -> dict:
    query = db.session.query(StockTransfer).filter(StockTransfer.deleted_at.is_(None))
    if store_id is not None:
        query = query.filter(
            (StockTransfer.from_store_id == store_id) | (StockTransfer.to_store_id == store_id)
        )
    if status is not None:
        query = query.filter(StockTransfer.status == coerce_choice(status, "status", TRANSFER_STATUSES))
    return paginate(query.order_by(StockTransfer.id.desc()), page, per_page)
