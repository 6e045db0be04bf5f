from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from ..calculators.discount import apply_discount, discount_amount
from ..calculators.margin import margin_pct
from ..domain.models import (
    DEFAULT_LIMITS,
    ConflictPolicy,
    DiscountKind,
    PriceLimits,
    PricingContext,
    Product,
    ProductDiscount,
    TierResult,
)
from ..engine.tier_resolver import TIER_BASE, PriceTierResolver
from ..errors import ConflictType, PricingError
from ..money import quantize, to_decimal

D = Decimal

MIN_PRIORITY = 1
MAX_PRIORITY = 5


@dataclass(frozen=True)
class Conflict:
    type: ConflictType
    details: str
    meta: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "details": self.details, "meta": dict(self.meta)}


@dataclass
class ConflictReport:
    is_valid: bool
    conflicts: List[Conflict]
    warnings: List[str]

    def types(self) -> List[ConflictType]:
        return [c.type for c in self.conflicts]

    def has(self, conflict_type: ConflictType) -> bool:
        return conflict_type in self.types()


class _Collector:
    """Accumulates violations so every problem surfaces in one report."""

    def __init__(self) -> None:
        self.conflicts: List[Conflict] = []
        self.warnings: List[str] = []

    def block(self, conflict_type: ConflictType, details: str, **meta: Any) -> None:
        self.conflicts.append(Conflict(conflict_type, details, meta))

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def has(self, conflict_type: ConflictType) -> bool:
        return any(c.type == conflict_type for c in self.conflicts)

    def report(self) -> ConflictReport:
        return ConflictReport(
            is_valid=len(self.conflicts) == 0,
            conflicts=list(self.conflicts),
            warnings=list(self.warnings),
        )


class ConflictValidator:
    """
    Gates persistence of a product's price/discount configuration.
    Never raises for bad configuration; returns a ConflictReport instead.
    """

    def __init__(self, limits: Optional[PriceLimits] = None):
        self.limits = limits or DEFAULT_LIMITS
        self.resolver = PriceTierResolver(self.limits)

    def validate(
        self,
        candidate: Product,
        all_products: Iterable[Product] = (),
        exclude_id: Optional[int] = None,
        *,
        bulk: bool = False,
        today: Optional[date] = None,
    ) -> ConflictReport:
        today = today or date.today()
        out = _Collector()

        price = self._price(candidate, out)
        if price is None:
            return out.report()

        purchase = self._purchase(candidate, out)

        # absolute bounds
        if price < self.limits.min_price:
            out.block(
                ConflictType.BOUNDS_VIOLATION,
                f"Price cannot be less than {self.limits.min_price}",
                price=str(price),
            )
        if price > self.limits.max_price:
            out.block(
                ConflictType.BOUNDS_VIOLATION,
                f"Price cannot exceed {self.limits.max_price}",
                price=str(price),
            )

        # margin guard on the configured price
        if purchase > 0 and price <= purchase:
            out.block(
                ConflictType.MARGIN_VIOLATION,
                "Selling price must be greater than purchase price",
                price=str(price),
                purchasePrice=str(purchase),
            )

        # margin guard on the tier-resolved price (variation / seasonal)
        effective = price
        try:
            tier = self.resolver.resolve(candidate, PricingContext(quantity=1, evaluation_date=today))
        except PricingError as e:
            out.block(ConflictType(e.code), e.message, **e.meta)
            tier = None

        if tier is not None:
            effective = tier.final_price
            self._check_seasonal(candidate, tier, out)
            if (
                tier.applied_tier_name != TIER_BASE
                and purchase > 0
                and effective <= purchase
                and not out.has(ConflictType.MARGIN_VIOLATION)
            ):
                out.block(
                    ConflictType.MARGIN_VIOLATION,
                    f"{tier.applied_tier_name.capitalize()} price {effective} must be greater than purchase price {purchase}",
                    tier=tier.applied_tier_name,
                    price=str(effective),
                    purchasePrice=str(purchase),
                )

        if candidate.discount is not None:
            effective = self._check_discount(candidate.discount, effective, purchase, out, bulk=bulk, today=today)

        if purchase > 0 and effective > purchase:
            m = margin_pct(effective, purchase)
            if m < self.limits.min_margin_warning_pct:
                out.warn(
                    f"Profit margin {m}% is below {self.limits.min_margin_warning_pct}% "
                    f"(minimum suggested selling price {quantize(purchase * D('1.1'))})"
                )

        self._check_peers(candidate, all_products, exclude_id, out)
        return out.report()

    # -----------------
    # checks
    # -----------------

    @staticmethod
    def _price(candidate: Product, out: _Collector) -> Optional[D]:
        if candidate.base_price is None:
            out.block(ConflictType.INVALID_PRODUCT, "Valid price is required", productId=candidate.id)
            return None
        try:
            price = to_decimal(candidate.base_price, field="price")
        except PricingError as e:
            out.block(ConflictType.INVALID_AMOUNT, e.message, **e.meta)
            return None
        if price < 0:
            out.block(ConflictType.INVALID_PRODUCT, "Price may not be negative", price=str(price))
            return None
        return price

    @staticmethod
    def _purchase(candidate: Product, out: _Collector) -> D:
        try:
            purchase = to_decimal(candidate.purchase_price or 0, field="purchase_price")
        except PricingError as e:
            out.block(ConflictType.INVALID_AMOUNT, e.message, **e.meta)
            return D("0")
        if purchase < 0:
            out.block(ConflictType.INVALID_PRODUCT, "Purchase price may not be negative", purchasePrice=str(purchase))
            return D("0")
        return purchase

    def _check_seasonal(self, candidate: Product, tier: TierResult, out: _Collector) -> None:
        # the resolver clamps to the floor; a config that needs the clamp is a bug
        seasonal = candidate.seasonal_discount
        if seasonal is None:
            return
        discounted_from = tier.variation_price if tier.variation_price is not None else tier.base_price
        value = to_decimal(seasonal.value, field="seasonal_discount.value")
        if seasonal.kind == DiscountKind.FIXED and value > 0 and value >= discounted_from:
            out.block(
                ConflictType.BOUNDS_VIOLATION,
                "Fixed seasonal discount cannot be equal to or greater than the price it discounts",
                value=str(value),
                price=str(discounted_from),
            )
        elif tier.seasonal_price is not None and tier.seasonal_price < self.limits.min_price:
            out.block(
                ConflictType.BOUNDS_VIOLATION,
                f"Seasonal price cannot be less than {self.limits.min_price}",
                price=str(tier.seasonal_price),
            )

    def _check_discount(
        self,
        discount: ProductDiscount,
        effective: D,
        purchase: D,
        out: _Collector,
        *,
        bulk: bool,
        today: date,
    ) -> D:
        """Returns the price after the discount when the discount is usable."""
        try:
            value = to_decimal(discount.value, field="discount.value")
        except PricingError as e:
            out.block(ConflictType.INVALID_AMOUNT, e.message, **e.meta)
            return effective

        if not MIN_PRIORITY <= int(discount.priority) <= MAX_PRIORITY:
            out.block(
                ConflictType.CONFIGURATION_CONFLICT,
                f"Discount priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}",
                priority=discount.priority,
            )
        if discount.start_date and discount.end_date and discount.start_date > discount.end_date:
            out.block(
                ConflictType.CONFIGURATION_CONFLICT,
                "Discount start date must be on or before end date",
                startDate=discount.start_date.isoformat(),
                endDate=discount.end_date.isoformat(),
            )

        if value == 0:
            return effective
        if value < 0:
            out.block(ConflictType.BOUNDS_VIOLATION, "Discount value may not be negative", value=str(value))
            return effective

        usable = True
        if discount.kind == DiscountKind.PERCENTAGE:
            cap = self.limits.max_bulk_discount_pct if bulk else self.limits.max_product_discount_pct
            if value > cap:
                out.block(
                    ConflictType.BOUNDS_VIOLATION,
                    f"Percentage discount cannot exceed {cap}%",
                    value=str(value),
                    max=str(cap),
                    bulk=bulk,
                )
                usable = False
        elif value >= effective:
            # compared with the price it actually discounts (variation/seasonal included)
            out.block(
                ConflictType.BOUNDS_VIOLATION,
                "Fixed discount cannot be equal to or greater than the product price",
                value=str(value),
                price=str(effective),
            )
            usable = False

        if not usable:
            return effective

        discounted = apply_discount(effective, replace(discount, value=value))
        if discounted < self.limits.min_price:
            out.block(
                ConflictType.BOUNDS_VIOLATION,
                f"Discounted price cannot be less than {self.limits.min_price}",
                discountedPrice=str(discounted),
            )
            return effective
        if purchase > 0 and discounted <= purchase and not out.has(ConflictType.MARGIN_VIOLATION):
            out.block(
                ConflictType.MARGIN_VIOLATION,
                "Discounted price cannot be equal to or less than purchase price",
                discountedPrice=str(discounted),
                purchasePrice=str(purchase),
            )

        if not discount.is_active_on(today):
            out.warn(f"Discount is configured but not active on {today.isoformat()}")
            return effective
        return discounted

    @staticmethod
    def _check_peers(
        candidate: Product,
        all_products: Iterable[Product],
        exclude_id: Optional[int],
        out: _Collector,
    ) -> None:
        mine = candidate.discount
        if mine is None or mine.value <= 0:
            return

        for p in all_products:
            if exclude_id is not None and p.id == exclude_id:
                continue
            if p.category != candidate.category or p.discount is None or p.discount.value <= 0:
                continue
            if p.discount.priority == mine.priority and p.discount.overlaps(mine):
                out.warn(
                    f"{ConflictType.DISCOUNT_CONFLICT.value}: overlaps with discount on product "
                    f"#{p.id} ({p.name}) at priority {mine.priority}"
                )


# -----------------------------
# Category-wide discount proposals
# -----------------------------


@dataclass(frozen=True)
class CategoryDiscountResolution:
    product_id: int
    action: str  # "apply" | "skip" | "override" | "merge"
    discount: Optional[ProductDiscount]
    conflict: Optional[Conflict] = None

    @property
    def has_conflict(self) -> bool:
        return self.conflict is not None

    @property
    def changes_discount(self) -> bool:
        return self.action != "skip"


def has_running_discount(product: Product, today: date) -> bool:
    d = product.discount
    if d is None or d.value <= 0:
        return False
    return d.end_date is None or d.end_date >= today


def resolve_category_discount(
    product: Product,
    proposed: ProductDiscount,
    policy: ConflictPolicy | str = ConflictPolicy.SKIP,
    *,
    today: Optional[date] = None,
) -> CategoryDiscountResolution:
    """
    A product already carrying a running discount conflicts with a new
    category-wide discount:
      skip     -> product is left out of the batch
      override -> proposed discount replaces the existing one
      merge    -> the larger of the two reductions is kept
    """
    today = today or date.today()
    policy = ConflictPolicy(policy)

    if not has_running_discount(product, today):
        return CategoryDiscountResolution(product.id, "apply", proposed)

    existing = product.discount
    conflict = Conflict(
        ConflictType.DISCOUNT_CONFLICT,
        f"Product already has a {existing.kind.value} discount of {existing.value}",
        {"productId": product.id, "existing": str(existing.value), "proposed": str(proposed.value), "policy": policy.value},
    )

    if policy == ConflictPolicy.SKIP:
        return CategoryDiscountResolution(product.id, "skip", None, conflict)
    if policy == ConflictPolicy.OVERRIDE:
        return CategoryDiscountResolution(product.id, "override", proposed, conflict)

    if existing.kind == proposed.kind:
        winner = proposed if proposed.value >= existing.value else replace(
            proposed, kind=existing.kind, value=existing.value
        )
    else:
        price = to_decimal(product.base_price or 0, field="price")
        mine = discount_amount(existing.kind, existing.value, price)
        theirs = discount_amount(proposed.kind, proposed.value, price)
        winner = proposed if theirs >= mine else replace(proposed, kind=existing.kind, value=existing.value)
    return CategoryDiscountResolution(product.id, "merge", winner, conflict)


def validate_configuration(
    product: Product,
    all_products: Iterable[Product] = (),
    exclude_id: Optional[int] = None,
    *,
    bulk: bool = False,
    limits: Optional[PriceLimits] = None,
    today: Optional[date] = None,
) -> ConflictReport:
    return ConflictValidator(limits).validate(product, all_products, exclude_id, bulk=bulk, today=today)
