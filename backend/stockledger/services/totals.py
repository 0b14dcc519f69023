# Overview: Header totals from line totals and document-level charges.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from ..errors import ValidationError
from ..models.transactions import (
    DOCUMENT_STATUS_PAID,
    DOCUMENT_STATUS_PARTIAL,
    DOCUMENT_STATUSES,
)
from ..money import MAX_AMOUNT, ZERO, quantize, to_money


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    total: Decimal
    due: Decimal


def _amount(value, field: str) -> Decimal:
    try:
        amount = to_money(value, default=ZERO)
    except ValueError:
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", details={"field": field})
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum amount", details={"field": field})
    return amount


def compute_totals(
    line_totals: Iterable,
    discount=ZERO,
    tax_amount=ZERO,
    extra_charge=ZERO,
    status: str = "Pending",
    due_amount=None,
) -> Totals:
    """
    subtotal = sum(line totals)
    total    = subtotal - discount + tax + extra charge
    due      = 0 when Paid, the supplied amount when Partial, else total

    Pure: no database access. Everything is quantized to cents half-up.
    """
    if status not in DOCUMENT_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(DOCUMENT_STATUSES)}",
            details={"field": "status", "value": status},
        )

    subtotal = quantize(sum((_amount(t, "line_total") for t in line_totals), ZERO))
    discount = _amount(discount, "discount")
    tax_amount = _amount(tax_amount, "tax_amount")
    extra_charge = _amount(extra_charge, "extra_charge")

    if subtotal > MAX_AMOUNT:
        raise ValidationError("subtotal exceeds maximum amount", details={"subtotal": str(subtotal)})
    total = quantize(subtotal - discount + tax_amount + extra_charge)
    if total > MAX_AMOUNT:
        raise ValidationError("total_amount exceeds maximum amount", details={"total_amount": str(total)})
    if total < 0:
        raise ValidationError(
            "discount exceeds document value",
            details={"subtotal": str(subtotal), "discount": str(discount)},
        )

    due: Optional[Decimal]
    if status == DOCUMENT_STATUS_PAID:
        due = ZERO
    elif status == DOCUMENT_STATUS_PARTIAL:
        if due_amount is None or due_amount == "":
            raise ValidationError("due_amount is required for Partial status", details={"field": "due_amount"})
        due = _amount(due_amount, "due_amount")
        if due > total:
            raise ValidationError(
                "due_amount cannot exceed total_amount",
                details={"due_amount": str(due), "total_amount": str(total)},
            )
    else:
        # Pending and Cancelled: nothing has been paid
        due = total

    return Totals(subtotal=subtotal, total=total, due=due)


def reconcile(supplied, computed: Decimal, field: str) -> None:
    """Client-supplied totals are accepted only when they agree with the computed value."""
    if supplied is None or supplied == "":
        return
    try:
        value = to_money(supplied)
    except ValueError:
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if value != computed:
        raise ValidationError(
            f"{field} does not match the computed value",
            details={"field": field, "supplied": str(value), "computed": str(computed)},
        )
