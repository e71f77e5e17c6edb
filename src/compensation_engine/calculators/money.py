"""Decimal helpers for monetary amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from compensation_engine.exceptions import ValidationError

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents), half-up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def percent_of(base: Decimal, percent: Decimal) -> Decimal:
    """percent/100 x base, rounded once to cents."""
    return round_to_cents(base * percent / Decimal("100"))


def to_decimal(value: Any, field_name: str, *, required: bool = True) -> Decimal | None:
    """Coerce input to Decimal.

    Raises ValidationError when the value is missing (and required) or is
    not numeric.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be numeric")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be numeric, got {value!r}")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return result
