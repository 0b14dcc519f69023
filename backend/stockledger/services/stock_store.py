# Overview: StockRecord access for the ledger; keyed lookup, locked increase/decrease and movement audit.

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ..errors import InsufficientStock, StockNotFound, ValidationError
from ..extensions import db
from ..kinds import DocumentKind
from ..models import StockMovement, StockRecord
from ..models.stock import STOCK_STATUS_ACTIVE
from ..money import ZERO, quantize
from .concurrency import lock_for_update
from .directives import StockDirective, StockKey

"""
Stock store invariants:
- quantity >= 0 after every call; a strict decrease that would go negative
  raises InsufficientStock and mutates nothing.
- Every record read for mutation is row-locked (SELECT ... FOR UPDATE).
- Keys match NULL store/batch with IS NULL, so (p, None, None) is its own record.
- Soft-deleted records are invisible here.
- No commit/rollback in this module; callers own the transaction.
"""


def _live():
    return db.session.query(StockRecord).filter(StockRecord.deleted_at.is_(None))


def _match(column, value):
    return column.is_(None) if value is None else column == value


def get_or_none(product_id: int, store_id: int | None = None, batch_id: int | None = None, *, lock: bool = False) -> Optional[StockRecord]:
    query = _live().filter(
        StockRecord.product_id == product_id,
        _match(StockRecord.store_id, store_id),
        _match(StockRecord.batch_id, batch_id),
    ).order_by(StockRecord.id.asc())
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_by_id(stock_id: int, *, lock: bool = False) -> StockRecord:
    query = _live().filter(StockRecord.id == stock_id)
    if lock:
        query = lock_for_update(query)
    record = query.first()
    if record is None:
        raise StockNotFound(f"Stock record {stock_id} not found", details={"stock_id": stock_id})
    return record


def _locate(key: StockKey, stock_id: int | None) -> Optional[StockRecord]:
    if stock_id is not None:
        return get_by_id(stock_id, lock=True)
    return get_or_none(key.product_id, key.store_id, key.batch_id, lock=True)


def _require_positive(delta: int) -> None:
    if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
        raise ValidationError("quantity delta must be a positive integer", details={"delta": delta})


def increase(key: StockKey, delta: int, unit_cost: Decimal | None = None, *, stock_id: int | None = None) -> StockRecord:
    """
    Add `delta` units, creating the record on first receipt.

    A new record starts at `delta` with `unit_cost` (0.00 when None). An
    existing record only has its cost overwritten when a cost is given.
    """
    _require_positive(delta)
    record = _locate(key, stock_id)
    if record is None:
        record = StockRecord(
            product_id=key.product_id,
            store_id=key.store_id,
            batch_id=key.batch_id,
            quantity=delta,
            unit_cost=unit_cost if unit_cost is not None else ZERO,
            status=STOCK_STATUS_ACTIVE,
        )
        db.session.add(record)
        db.session.flush()
        return record

    record.quantity = record.quantity + delta
    if unit_cost is not None:
        record.unit_cost = unit_cost
    return record


def decrease(key: StockKey, delta: int, clamp_at_zero: bool = False, *, stock_id: int | None = None) -> tuple[Optional[StockRecord], int]:
    """
    Remove `delta` units. Returns (record, amount actually removed).

    Strict mode raises InsufficientStock when the record is missing or short.
    With clamp_at_zero the quantity floors at zero and a missing record
    removes nothing.
    """
    _require_positive(delta)
    if stock_id is not None:
        record = lock_for_update(_live().filter(StockRecord.id == stock_id)).first()
    else:
        record = get_or_none(key.product_id, key.store_id, key.batch_id, lock=True)

    if record is None:
        if clamp_at_zero:
            return None, 0
        raise InsufficientStock(
            "No stock on hand",
            details={"product_id": key.product_id, "stock_id": stock_id, "requested": delta, "available": 0},
        )

    if record.quantity < delta:
        if not clamp_at_zero:
            raise InsufficientStock(
                "Insufficient stock",
                details={
                    "product_id": record.product_id,
                    "stock_id": record.id,
                    "requested": delta,
                    "available": record.quantity,
                },
            )
        removed = record.quantity
    else:
        removed = delta

    record.quantity = record.quantity - removed
    return record, removed


def apply(directive: StockDirective, *, document_kind: DocumentKind, document_id: int, is_reversal: bool = False) -> tuple[Optional[StockRecord], int]:
    """
    Carry out one directive and append its StockMovement.

    Returns (record, absolute quantity applied). A clamp against a missing
    record returns (None, 0) and writes no movement.
    """
    if directive.delta > 0:
        record = increase(directive.key, directive.delta, directive.unit_cost, stock_id=directive.stock_id)
        applied = directive.delta
        signed = applied
    else:
        record, applied = decrease(
            directive.key, -directive.delta, directive.clamp_at_zero, stock_id=directive.stock_id
        )
        signed = -applied

    if record is None:
        return None, 0

    db.session.add(StockMovement(
        stock_id=record.id,
        document_kind=DocumentKind(document_kind).value,
        document_id=document_id,
        requested_delta=directive.delta,
        applied_delta=signed,
        is_reversal=is_reversal,
        unit_cost=directive.unit_cost,
        quantity_after=record.quantity,
    ))
    if signed != directive.delta:
        current_app.logger.info(
            "Clamped %s %s on stock %s: requested %d, applied %d",
            DocumentKind(document_kind).value, document_id, record.id, directive.delta, signed,
        )
    return record, applied


# -----------------------------------------------------------------------------
# Read accessors
# -----------------------------------------------------------------------------

def list_stock(product_id: int | None = None, store_id: int | None = None, include_inactive: bool = False) -> list[StockRecord]:
    query = _live()
    if product_id is not None:
        query = query.filter(StockRecord.product_id == product_id)
    if store_id is not None:
        query = query.filter(StockRecord.store_id == store_id)
    if not include_inactive:
        query = query.filter(StockRecord.status == STOCK_STATUS_ACTIVE)
    return query.order_by(StockRecord.product_id.asc(), StockRecord.id.asc()).all()


def quantity_on_hand(product_id: int, store_id: int | None = None) -> int:
    """Sum across batches; store_id=None sums every location."""
    query = db.session.query(func.coalesce(func.sum(StockRecord.quantity), 0)).filter(
        StockRecord.product_id == product_id,
        StockRecord.deleted_at.is_(None),
    )
    if store_id is not None:
        query = query.filter(StockRecord.store_id == store_id)
    return int(query.scalar() or 0)


def list_movements(stock_id: int) -> list[StockMovement]:
    record = get_by_id(stock_id)
    return record.movements.order_by(StockMovement.id.asc()).all()


def low_stock(threshold: int | None = None, store_id: int | None = None) -> list[StockRecord]:
    """Active records at or below `threshold` units, emptiest first."""
    if threshold is None:
        threshold = current_app.config.get("LEDGER_LOW_STOCK_THRESHOLD", 10)
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
        raise ValidationError("threshold must be a non-negative integer", details={"threshold": threshold})
    query = _live().filter(
        StockRecord.status == STOCK_STATUS_ACTIVE,
        StockRecord.quantity <= threshold,
    )
    if store_id is not None:
        query = query.filter(StockRecord.store_id == store_id)
    return query.order_by(StockRecord.quantity.asc(), StockRecord.id.asc()).all()


def total_value(store_id: int | None = None) -> Decimal:
    """SUM(quantity * unit_cost) over live records, at the last-write-wins unit cost."""
    query = db.session.query(
        func.coalesce(func.sum(StockRecord.quantity * StockRecord.unit_cost), 0)
    ).filter(StockRecord.deleted_at.is_(None))
    if store_id is not None:
        query = query.filter(StockRecord.store_id == store_id)
    return quantize(Decimal(str(query.scalar() or 0)))
