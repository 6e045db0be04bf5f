from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..domain.models import DiscountKind, ProductDiscount
from ..money import ZERO, multiply_by_percent, quantize, subtract

D = Decimal


def discount_amount(kind: DiscountKind, value: D, price: D) -> D:
    """Money a discount takes off `price`; never more than the price."""
    if value <= 0:
        return ZERO
    if kind == DiscountKind.PERCENTAGE:
        return min(multiply_by_percent(price, value), quantize(price))
    return min(quantize(value), quantize(price))


def apply_discount(price: D, discount: Optional[ProductDiscount]) -> D:
    if discount is None:
        return quantize(price)
    return subtract(price, discount_amount(discount.kind, discount.value, price))
