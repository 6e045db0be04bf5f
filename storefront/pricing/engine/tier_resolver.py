from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..calculators.seasonal import calc_seasonal_delta
from ..domain.models import DEFAULT_LIMITS, PriceLimits, PricingContext, Product, TierResult
from ..errors import InvalidProduct
from ..explain import Breakdown
from ..money import clamp, quantize, to_decimal

D = Decimal

TIER_BASE = "base"
TIER_VARIATION = "variation"
TIER_SEASONAL = "seasonal"


class PriceTierResolver:
    """
    Resolves the per-unit price of a product before any promotional offer:

        base -> variation override -> seasonal discount -> [min, max] guard

    The order is fixed. Quantity is never applied here; callers multiply
    (TierResult.line_total) so rounding is not amplified across layers.
    """

    def __init__(self, limits: Optional[PriceLimits] = None):
        self.limits = limits or DEFAULT_LIMITS

    def resolve(self, product: Product, context: Optional[PricingContext] = None) -> TierResult:
        context = context or PricingContext()
        trail = Breakdown()

        if product.base_price is None:
            raise InvalidProduct("Product has no base price", {"productId": product.id})
        base = to_decimal(product.base_price, field="base_price")
        if base < 0:
            raise InvalidProduct("Base price may not be negative", {"productId": product.id, "basePrice": str(base)})

        base = quantize(base)
        current = base
        tier = TIER_BASE
        trail.add_step("BASE", f"Base price: {base}")

        variation = self._variation_price(product, context)
        if variation is not None:
            current = variation
            tier = TIER_VARIATION
            trail.add_step("VARIATION", f"Variation price: {variation}")

        seasonal_price: Optional[D] = None
        try:
            delta, meta = calc_seasonal_delta(current, product.seasonal_discount)
        except InvalidProduct as e:
            e.meta.setdefault("productId", product.id)
            raise
        if delta != 0:
            seasonal_price = quantize(max(current + delta, D("0")))
            current = seasonal_price
            tier = TIER_SEASONAL
            label = f"{meta['value']}%" if meta.get("kind") == "Percentage" else meta["value"]
            trail.add_step("SEASONAL", f"Seasonal discount {label}: {delta:+.2f}")
            if seasonal_price == 0:
                trail.add_warning("SEASONAL_FLOOR", "Seasonal discount consumes the whole price")
        elif meta.get("reason") == "inactive":
            trail.add_meta("SEASONAL_INACTIVE", "Seasonal discount configured but not active")

        final = quantize(clamp(current, self.limits.min_price, self.limits.max_price))
        if final != current:
            trail.add_check(
                "PRICE_GUARD",
                f"Price {current} clamped to {final} (range {self.limits.min_price}-{self.limits.max_price})",
                status="OK",
            )

        return TierResult(
            base_price=base,
            variation_price=variation,
            seasonal_price=seasonal_price,
            final_price=final,
            applied_tier_name=tier,
            steps=trail.as_strings(),
        )

    @staticmethod
    def _variation_price(product: Product, context: PricingContext) -> Optional[D]:
        # explicitly chosen variant wins over the product-level override
        for raw, name in (
            (context.selected_variant_price, "selected_variant_price"),
            (product.variation_price_override, "variation_price_override"),
        ):
            if raw is None:
                continue
            v = to_decimal(raw, field=name)
            if v > 0:
                return quantize(v)
        return None


def resolve_price(
    product: Product,
    context: Optional[PricingContext] = None,
    *,
    limits: Optional[PriceLimits] = None,
) -> TierResult:
    return PriceTierResolver(limits).resolve(product, context)
