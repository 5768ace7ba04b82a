"""
Decimal helpers for monetary amounts
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats, strings and Decimals; raises ValueError otherwise"""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a number: {value!r}")
    return result


def to_money(value: Any) -> Decimal:
    """Round to 2 decimal places, half up"""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100, defined as zero when whole is zero"""
    if whole == 0:
        return ZERO
    return to_money(part / whole * 100)
