from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from .errors import ValidationError
from .money import MAX_AMOUNT, ZERO, to_money
from .time_utils import parse_iso_date


def coerce_int(value: Any, field: str, *, required: bool = False, positive: bool = False) -> int | None:
    """
    Strict integer coercion for ids and quantities.

    Accepts ints and plain digit strings. Rejects bools, floats, decimal
    points and scientific notation so "1e3" or 2.5 never become quantities.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required", details={"field": field})
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={"field": field})

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                details={"field": field},
            )
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", details={"field": field})
    else:
        raise ValidationError(f"{field} must be an integer", details={"field": field})

    if positive and result <= 0:
        raise ValidationError(f"{field} must be positive", details={"field": field, "value": result})
    return result


def coerce_money(value: Any, field: str, *, required: bool = False, default: Decimal | None = ZERO) -> Decimal | None:
    """Non-negative cent-quantized Decimal; `default` when absent and not required."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", details={"field": field})
        return default
    try:
        amount = to_money(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", details={"field": field})
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum amount", details={"field": field})
    return amount


def coerce_choice(value: Any, field: str, choices: Iterable[str], *, default: str | None = None) -> str:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required", details={"field": field})
        return default
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of {', '.join(choices)}",
            details={"field": field, "value": value},
        )
    return value


def coerce_date(value: Any, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date", details={"field": field})


def coerce_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds {max_length} characters", details={"field": field})
    return text or None


def require_mapping(payload: Any, what: str) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError(f"{what} must be an object")
    return payload
