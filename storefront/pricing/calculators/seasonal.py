from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from ..domain.models import DiscountKind, SeasonalDiscount
from ..errors import InvalidProduct
from ..money import HUNDRED, ZERO, multiply_by_percent, quantize, to_decimal

D = Decimal


def calc_seasonal_delta(price: D, seasonal: Optional[SeasonalDiscount]) -> Tuple[D, Dict[str, Any]]:
    """
    Reduction a seasonal discount takes off `price` (delta <= 0).
    Inactive or zero-valued discounts yield 0.
    """
    if seasonal is None:
        return ZERO, {"reason": "none"}

    value = to_decimal(seasonal.value, field="seasonal_discount.value")
    if value < 0:
        raise InvalidProduct(
            "Seasonal discount value may not be negative",
            {"value": str(value)},
        )
    if seasonal.kind == DiscountKind.PERCENTAGE and value > HUNDRED:
        raise InvalidProduct(
            "Seasonal percentage discount may not exceed 100",
            {"value": str(value)},
        )

    if not seasonal.active:
        return ZERO, {"reason": "inactive"}
    if value == 0:
        return ZERO, {"reason": "value<=0"}

    if seasonal.kind == DiscountKind.PERCENTAGE:
        reduction = multiply_by_percent(price, value)
    else:
        # fixed: never more than the price itself (result floored at 0)
        reduction = min(quantize(value), quantize(price))

    return reduction * D("-1"), {"kind": seasonal.kind.value, "value": str(value)}
