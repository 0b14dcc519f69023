# Overview: Stock adjustment lifecycle; Pending -> Done applies the correction exactly once.

from __future__ import annotations

from flask import current_app

from ..errors import DocumentNotFound, InvalidStatusTransition, ValidationError
from ..extensions import db
from ..kinds import DocumentKind
from ..models import StockAdjustment
from ..models.stock import (
    ADJUSTMENT_STATUS_CANCELLED,
    ADJUSTMENT_STATUS_DONE,
    ADJUSTMENT_STATUS_PENDING,
    ADJUSTMENT_STATUSES,
    ADJUSTMENT_TYPES,
)
from ..time_utils import utcnow
from ..validation import coerce_choice, coerce_int, coerce_money, coerce_text, require_mapping
from . import events, lookups, stock_store
from .concurrency import lock_for_update, run_in_transaction
from .directives import adjustment_directive, adjustment_reversal
from .paging import paginate

KIND = DocumentKind.STOCK_ADJUSTMENT

# Allowed transitions; Done and Cancelled are terminal
_TRANSITIONS = {
    ADJUSTMENT_STATUS_PENDING: {ADJUSTMENT_STATUS_DONE, ADJUSTMENT_STATUS_CANCELLED},
    ADJUSTMENT_STATUS_DONE: set(),
    ADJUSTMENT_STATUS_CANCELLED: set(),
}

_EDITABLE_FIELDS = ("product_id", "store_id", "batch_id", "quantity_change", "adjustment_type", "adjusted_value", "reason", "notes")


def _load(adjustment_id, *, lock: bool = False) -> StockAdjustment:
    query = db.session.query(StockAdjustment).filter(
        StockAdjustment.id == adjustment_id,
        StockAdjustment.deleted_at.is_(None),
    )
    if lock:
        query = lock_for_update(query)
    adjustment = query.first()
    if adjustment is None:
        raise DocumentNotFound(f"Stock adjustment {adjustment_id} not found", details={"id": adjustment_id})
    return adjustment


def _assign(adjustment: StockAdjustment, data: dict, *, creating: bool) -> None:
    def supplied(field):
        return creating or field in data

    if supplied("product_id"):
        adjustment.product_id = lookups.get_product(data.get("product_id")).id
    if supplied("store_id"):
        store = lookups.get_store(data.get("store_id"))
        adjustment.store_id = store.id if store is not None else None
    if supplied("batch_id"):
        batch = lookups.get_batch(data.get("batch_id"))
        adjustment.batch_id = batch.id if batch is not None else None
    if supplied("quantity_change"):
        adjustment.quantity_change = coerce_int(data.get("quantity_change"), "quantity_change", required=True, positive=True)
    if supplied("adjustment_type"):
        adjustment.adjustment_type = coerce_choice(data.get("adjustment_type"), "adjustment_type", ADJUSTMENT_TYPES)
    if supplied("adjusted_value"):
        adjustment.adjusted_value = coerce_money(data.get("adjusted_value"), "adjusted_value", default=None)
    if supplied("reason"):
        adjustment.reason = coerce_text(data.get("reason"), "reason")
    if supplied("notes"):
        adjustment.notes = coerce_text(data.get("notes"), "notes")


def _apply(adjustment: StockAdjustment) -> None:
    record, applied = stock_store.apply(adjustment_directive(adjustment), document_kind=KIND, document_id=adjustment.id)
    adjustment.stock_id = record.id if record is not None else None
    adjustment.applied_quantity = applied
    adjustment.applied_at = utcnow()


def _transition(adjustment: StockAdjustment, new_status: str) -> None:
    if new_status not in _TRANSITIONS[adjustment.status]:
        current_app.logger.warning(
            "Rejected stock adjustment %s transition %s -> %s", adjustment.id, adjustment.status, new_status
        )
        raise InvalidStatusTransition(
            f"Cannot change stock adjustment from {adjustment.status} to {new_status}",
            details={"id": adjustment.id, "from": adjustment.status, "to": new_status},
        )
    if new_status == ADJUSTMENT_STATUS_DONE:
        _apply(adjustment)
    adjustment.status = new_status


def _notify(event: str, adjustment: StockAdjustment) -> None:
    events.publish(f"{KIND.value}.{event}", KIND.value, adjustment.id, adjustment.to_dict)


def create_adjustment(data: dict, actor_user_id: int | None = None) -> StockAdjustment:
    """
    Record an adjustment. Created as Pending unless status=Done is requested,
    in which case the stock effect is applied immediately.
    """
    data = require_mapping(data or {}, "adjustment")
    status = coerce_choice(data.get("status"), "status", ADJUSTMENT_STATUSES, default=ADJUSTMENT_STATUS_PENDING)

    def _op():
        adjustment = StockAdjustment(
            status=ADJUSTMENT_STATUS_PENDING,
            created_by=actor_user_id,
            updated_by=actor_user_id,
        )
        _assign(adjustment, data, creating=True)
        db.session.add(adjustment)
        db.session.flush()
        if status != ADJUSTMENT_STATUS_PENDING:
            _transition(adjustment, status)
        return adjustment

    adjustment = run_in_transaction(_op)
    current_app.logger.info(
        "Created stock adjustment %s: %s %d (%s)",
        adjustment.id, adjustment.adjustment_type, adjustment.quantity_change, adjustment.status,
    )
    _notify("created", adjustment)
    return adjustment


def update_adjustment(adjustment_id: int, data: dict, actor_user_id: int | None = None) -> StockAdjustment:
    """Edit a Pending adjustment. Status changes go through set_adjustment_status."""
    data = require_mapping(data or {}, "adjustment")
    if "status" in data:
        raise ValidationError("use the status endpoint to change status", details={"field": "status"})
    unknown = set(data) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError("unknown fields", details={"fields": sorted(unknown)})

    def _op():
        adjustment = _load(adjustment_id, lock=True)
        if adjustment.status != ADJUSTMENT_STATUS_PENDING:
            raise InvalidStatusTransition(
                f"Only Pending adjustments can be edited (status is {adjustment.status})",
                details={"id": adjustment.id, "status": adjustment.status},
            )
        _assign(adjustment, data, creating=False)
        adjustment.updated_by = actor_user_id
        return adjustment

    adjustment = run_in_transaction(_op)
    current_app.logger.info("Updated stock adjustment %s", adjustment.id)
    _notify("updated", adjustment)
    return adjustment


def set_adjustment_status(adjustment_id: int, status: str, actor_user_id: int | None = None) -> StockAdjustment:
    """
    Pending -> Done applies the stock effect once; Pending -> Cancelled has none.
    Anything out of Done or Cancelled (including repeating it) raises InvalidStatusTransition.
    """
    status = coerce_choice(status, "status", ADJUSTMENT_STATUSES)

    def _op():
        adjustment = _load(adjustment_id, lock=True)
        _transition(adjustment, status)
        adjustment.updated_by = actor_user_id
        return adjustment

    adjustment = run_in_transaction(_op)
    current_app.logger.info("Stock adjustment %s is now %s", adjustment.id, adjustment.status)
    _notify("status_changed", adjustment)
    return adjustment


def delete_adjustment(adjustment_id: int, actor_user_id: int | None = None) -> StockAdjustment:
    """Soft-delete; a Done adjustment has its applied effect reversed first."""

    def _op():
        adjustment = _load(adjustment_id, lock=True)
        if adjustment.status == ADJUSTMENT_STATUS_DONE:
            directive = adjustment_reversal(adjustment)
            if directive is not None:
                stock_store.apply(directive, document_kind=KIND, document_id=adjustment.id, is_reversal=True)
        adjustment.deleted_at = utcnow()
        adjustment.updated_by = actor_user_id
        return adjustment

    adjustment = run_in_transaction(_op)
    current_app.logger.info("Deleted stock adjustment %s", adjustment.id)
    _notify("deleted", adjustment)
    return adjustment


def get_adjustment(adjustment_id: int) -> StockAdjustment:
    return _load(adjustment_id)


def list_adjustments(page: int | None = None, per_page: int | None = None, store_id: int | None = None, status: str | None = None) -> dict:
    query = db.session.query(StockAdjustment).filter(StockAdjustment.deleted_at.is_(None))
    if store_id is not None:
        query = query.filter(StockAdjustment.store_id == store_id)
    if status is not None:
        query = query.filter(StockAdjustment.status == coerce_choice(status, "status", ADJUSTMENT_STATUSES))
    return paginate(query.order_by(StockAdjustment.id.desc()), page, per_page)
