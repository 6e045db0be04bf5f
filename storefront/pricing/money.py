from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .errors import InvalidAmount

D = Decimal

CENT = D("0.01")
ZERO = D("0.00")
HUNDRED = D("100")


def to_decimal(value: Any, *, field: str = "amount") -> D:
    """
    Convert caller input to Decimal without going through binary floats.
    Floats are converted via str() so 0.1 stays 0.1.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"{field} is not a number", {"field": field, "value": repr(value)})

    if isinstance(value, D):
        d = value
    elif isinstance(value, (int, float, str)):
        try:
            d = D(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmount(f"{field} is not a number", {"field": field, "value": repr(value)})
    else:
        raise InvalidAmount(
            f"{field} has unsupported type {type(value).__name__}",
            {"field": field, "value": repr(value)},
        )

    if not d.is_finite():
        raise InvalidAmount(f"{field} must be finite", {"field": field, "value": str(d)})
    return d


def quantize(amount: Any) -> D:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def multiply_by_percent(amount: Any, percent: Any) -> D:
    a = to_decimal(amount)
    p = to_decimal(percent, field="percent")
    return (a * p / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def subtract(amount: Any, other: Any) -> D:
    """a - b, floored at 0."""
    result = to_decimal(amount) - to_decimal(other)
    if result < 0:
        return ZERO
    return result.quantize(CENT, rounding=ROUND_HALF_UP)


def clamp(amount: Any, minimum: Any, maximum: Any) -> D:
    a = to_decimal(amount)
    lo = to_decimal(minimum, field="minimum")
    hi = to_decimal(maximum, field="maximum")
    if lo > hi:
        raise InvalidAmount("minimum exceeds maximum", {"minimum": str(lo), "maximum": str(hi)})
    return min(max(a, lo), hi)


def percent_off(amount: Any, percent: Any) -> D:
    return subtract(amount, multiply_by_percent(amount, percent))
