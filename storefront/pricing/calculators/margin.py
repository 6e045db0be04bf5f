from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..domain.models import ProductDiscount
from ..money import CENT, HUNDRED, ZERO, quantize
from .discount import apply_discount

D = Decimal

MIN_MARKUP = D("1.1")  # purchase price + 10%


@dataclass(frozen=True)
class ProfitMetrics:
    final_price: D
    min_selling_price: D
    profit_margin_pct: D
    profit_per_unit: D


def margin_pct(sell: D, cost: D) -> D:
    """Markup over cost in percent; 0 when there is no cost or no price."""
    if cost <= 0 or sell <= 0:
        return ZERO
    return ((sell - cost) / cost * HUNDRED).quantize(CENT)


def profit_metrics(price: D, purchase_price: D, discount: Optional[ProductDiscount] = None) -> ProfitMetrics:
    final_price = apply_discount(price, discount)
    min_sell = quantize(purchase_price * MIN_MARKUP) if purchase_price > 0 else ZERO
    return ProfitMetrics(
        final_price=final_price,
        min_selling_price=min_sell,
        profit_margin_pct=margin_pct(final_price, purchase_price),
        profit_per_unit=quantize(final_price - purchase_price),
    )
