from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..domain.models import Deal, DealKind
from ..money import HUNDRED, ZERO, quantize

D = Decimal


def free_items(deal: Optional[Deal], quantity: int) -> int:
    if deal is None or quantity < deal.buy_qty:
        return 0
    if deal.kind == DealKind.BOGO:
        return quantity // 2
    sets = quantity // deal.buy_qty
    return sets * (deal.buy_qty - deal.pay_qty)


def deal_savings(deal: Optional[Deal], unit_price: D, quantity: int) -> D:
    """BOGO: every second unit free. Bundle 'N for M': N-M free per full set."""
    n = free_items(deal, quantity)
    if n <= 0:
        return ZERO
    return quantize(unit_price * D(n))


def price_change_percent(previous: Optional[D], current: Optional[D]) -> Optional[D]:
    """Positive = price went up, negative = on sale, None = nothing to show."""
    if previous is None or current is None or previous <= 0 or previous == current:
        return None
    return ((current - previous) / previous * HUNDRED).quantize(D("0.1"))
