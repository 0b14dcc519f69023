# Overview: Decimal helpers for monetary amounts (two places, half-up).

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# 9,999,999,999,999.99 fits Numeric(15, 2)
MAX_AMOUNT = Decimal("9999999999999.99")


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value, *, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Coerce an incoming amount to a cent-quantized Decimal.

    Accepts Decimal, int and numeric strings. Floats go through str() so
    9.1 stays 9.10 rather than 9.0999... Booleans are rejected.

    Raises ValueError for anything that is not a finite number.
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError):
        raise ValueError("amount must be a number")
    if not amount.is_finite():
        raise ValueError("amount must be a finite number")
    try:
        return quantize(amount)
    except InvalidOperation:
        # more digits than the decimal context can hold at cent precision
        raise ValueError("amount is out of range")


def money_str(value: Optional[Decimal]) -> Optional[str]:
    """Serialize for JSON: "36.00". None stays None."""
    if value is None:
        return None
    return str(quantize(Decimal(value)))
