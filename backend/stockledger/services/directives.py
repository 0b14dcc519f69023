# Overview: Stock effect of each document kind, forward and reversed, as plain data.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from ..kinds import DocumentKind
from ..money import quantize
from ..models.stock import ADJUSTMENT_INCREASE


"""
Effect table (q = line quantity, a = quantity actually applied):

    kind             forward            reversal
    Purchase         +q, cost = unit    -a, clamp at zero
    Sale             -q, strict         +a, cost untouched
    SaleReturn       +q                 -a, clamp at zero
    PurchaseReturn   -q, clamp at zero  +a

Reversal always targets the stock record recorded on the line, never a
re-derived key, so it lands exactly where the forward effect did.
"""


@dataclass(frozen=True)
class StockKey:
    product_id: int
    store_id: Optional[int] = None
    batch_id: Optional[int] = None


@dataclass(frozen=True)
class StockDirective:
    """
    One signed quantity change against a stock record.

    stock_id pins the record when known; otherwise the key is used and an
    increase may create the record.
    """
    key: StockKey
    delta: int
    clamp_at_zero: bool = False
    unit_cost: Optional[Decimal] = None
    stock_id: Optional[int] = None

    @property
    def is_increase(self) -> bool:
        return self.delta > 0


def _line_key(line, store_id) -> StockKey:
    line_store = getattr(line, "store_id", None)
    return StockKey(
        line.product_id,
        line_store if line_store is not None else store_id,
        getattr(line, "batch_id", None),
    )


def forward_directive(kind: DocumentKind, line, *, store_id=None) -> StockDirective:
    """Directive for a freshly composed line of a header + lines document."""
    key = _line_key(line, store_id)
    if kind is DocumentKind.PURCHASE:
        return StockDirective(key, line.quantity, unit_cost=line.unit_amount, stock_id=line.stock_id)
    if kind is DocumentKind.SALE:
        return StockDirective(key, -line.quantity, stock_id=line.stock_id)
    if kind is DocumentKind.SALE_RETURN:
        return StockDirective(key, line.quantity, stock_id=line.stock_id)
    if kind is DocumentKind.PURCHASE_RETURN:
        return StockDirective(key, -line.quantity, clamp_at_zero=True, stock_id=line.stock_id)
    raise ValueError(f"{kind} has no line directives")


def forward_directives(kind: DocumentKind, lines: Iterable, *, store_id=None) -> list[StockDirective]:
    """One directive per line, in line order."""
    return [forward_directive(kind, line, store_id=store_id) for line in lines]


def reverse_directive(kind: DocumentKind, line) -> Optional[StockDirective]:
    """
    Exact negation of what was applied for a persisted line.

    Returns None when the forward effect moved nothing (a clamp against a
    missing or empty record), since there is nothing to undo.
    """
    applied = line.applied_quantity if line.applied_quantity is not None else line.quantity
    if not applied or line.stock_id is None:
        return None
    key = StockKey(line.product_id, None, getattr(line, "batch_id", None))
    if kind is DocumentKind.PURCHASE:
        return StockDirective(key, -applied, clamp_at_zero=True, stock_id=line.stock_id)
    if kind is DocumentKind.SALE:
        return StockDirective(key, applied, stock_id=line.stock_id)
    if kind is DocumentKind.SALE_RETURN:
        return StockDirective(key, -applied, clamp_at_zero=True, stock_id=line.stock_id)
    if kind is DocumentKind.PURCHASE_RETURN:
        return StockDirective(key, applied, stock_id=line.stock_id)
    raise ValueError(f"{kind} has no line directives")


def reverse_directives(kind: DocumentKind, lines: Iterable) -> list[StockDirective]:
    directives = (reverse_directive(kind, line) for line in lines)
    return [d for d in directives if d is not None]


# -----------------------------------------------------------------------------
# Adjustments and transfers
# -----------------------------------------------------------------------------

def adjustment_directive(adjustment) -> StockDirective:
    key = StockKey(adjustment.product_id, adjustment.store_id, adjustment.batch_id)
    if adjustment.adjustment_type == ADJUSTMENT_INCREASE:
        unit_cost = None
        if adjustment.adjusted_value is not None:
            unit_cost = quantize(Decimal(adjustment.adjusted_value) / adjustment.quantity_change)
        return StockDirective(key, adjustment.quantity_change, unit_cost=unit_cost)
    return StockDirective(key, -adjustment.quantity_change)


def adjustment_reversal(adjustment) -> Optional[StockDirective]:
    if not adjustment.applied_quantity or adjustment.stock_id is None:
        return None
    key = StockKey(adjustment.product_id, adjustment.store_id, adjustment.batch_id)
    if adjustment.adjustment_type == ADJUSTMENT_INCREASE:
        return StockDirective(key, -adjustment.applied_quantity, clamp_at_zero=True, stock_id=adjustment.stock_id)
    return StockDirective(key, adjustment.applied_quantity, stock_id=adjustment.stock_id)


def transfer_directives(transfer, unit_cost=None) -> tuple[StockDirective, StockDirective]:
    """(source decrease, destination increase) for completing a transfer."""
    source = StockDirective(
        StockKey(transfer.product_id, transfer.from_store_id, transfer.batch_id),
        -transfer.quantity,
    )
    destination = StockDirective(
        StockKey(transfer.product_id, transfer.to_store_id, transfer.batch_id),
        transfer.quantity,
        unit_cost=unit_cost,
    )
    return source, destination


def transfer_reversal(transfer) -> list[StockDirective]:
    """Undo a completed transfer: take back from the destination, return to the source."""
    directives = []
    if transfer.to_stock_id is not None:
        directives.append(StockDirective(
            StockKey(transfer.product_id, transfer.to_store_id, transfer.batch_id),
            -transfer.quantity,
            clamp_at_zero=True,
            stock_id=transfer.to_stock_id,
        ))
    if transfer.from_stock_id is not None:
        directives.append(StockDirective(
            StockKey(transfer.product_id, transfer.from_store_id, transfer.batch_id),
            transfer.quantity,
            stock_id=transfer.from_stock_id,
        ))
    return directives
