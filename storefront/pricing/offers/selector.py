from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from ..domain.models import DiscountKind, Offer
from ..errors import InvalidAmount
from ..money import ZERO, multiply_by_percent, quantize, subtract, to_decimal

D = Decimal


@dataclass(frozen=True)
class OfferSummary:
    """
    final_total comes from the single selected offer only.
    display_savings sums every applied offer for a "Total Savings" badge;
    it is informational and never feeds the checkout price.
    """

    line_total: D
    selected: Optional[Offer]
    discount: D
    final_total: D
    applied: List[Offer] = field(default_factory=list)
    display_savings: D = ZERO


def _line_total(unit_price: D, quantity: int) -> D:
    unit = to_decimal(unit_price, field="unit_price")
    qty = to_decimal(quantity, field="quantity")
    if unit < 0 or qty < 0:
        raise InvalidAmount("unit_price and quantity must be >= 0", {"unitPrice": str(unit), "quantity": str(qty)})
    return quantize(unit * qty)


class OfferSelector:
    """Picks the applied offer and computes discount / final amounts."""

    @staticmethod
    def select_best(offers: Iterable[Offer]) -> Optional[Offer]:
        # auto-apply policy: first seasonal offer; otherwise the user chooses
        for o in offers:
            if o.seasonal:
                return o
        return None

    @staticmethod
    def compute_discount(offer: Optional[Offer], unit_price: D, quantity: int) -> D:
        if offer is None:
            return ZERO
        total = _line_total(unit_price, quantity)
        if offer.kind == DiscountKind.PERCENTAGE:
            return multiply_by_percent(total, offer.value)
        return min(quantize(offer.value), total)

    @classmethod
    def compute_final(cls, offer: Optional[Offer], unit_price: D, quantity: int) -> D:
        total = _line_total(unit_price, quantity)
        return subtract(total, cls.compute_discount(offer, unit_price, quantity))

    @classmethod
    def rank(cls, offers: Sequence[Offer], unit_price: D, quantity: int) -> List[Offer]:
        """Priority descending, then discount descending; ties keep catalog order."""
        return sorted(
            offers,
            key=lambda o: (-o.priority, -cls.compute_discount(o, unit_price, quantity)),
        )

    @classmethod
    def summarize(
        cls,
        selected: Optional[Offer],
        applied: Sequence[Offer],
        unit_price: D,
        quantity: int,
    ) -> OfferSummary:
        total = _line_total(unit_price, quantity)
        discount = cls.compute_discount(selected, unit_price, quantity)

        unique: List[Offer] = []
        seen = set()
        for o in list(applied) + ([selected] if selected is not None else []):
            if o.id not in seen:
                seen.add(o.id)
                unique.append(o)

        savings = sum((cls.compute_discount(o, unit_price, quantity) for o in unique), ZERO)

        return OfferSummary(
            line_total=total,
            selected=selected,
            discount=discount,
            final_total=subtract(total, discount),
            applied=unique,
            display_savings=min(quantize(savings), total),
        )


def select_offer(offers: Iterable[Offer]) -> Optional[Offer]:
    return OfferSelector.select_best(offers)


def compute_discount(offer: Optional[Offer], unit_price: D, quantity: int) -> D:
    return OfferSelector.compute_discount(offer, unit_price, quantity)


def compute_final(offer: Optional[Offer], unit_price: D, quantity: int) -> D:
    return OfferSelector.compute_final(offer, unit_price, quantity)
