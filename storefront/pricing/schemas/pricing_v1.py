# storefront/pricing/schemas/pricing_v1.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from ..domain.models import DiscountKind, PricingContext, Product, ProductDiscount, SeasonalDiscount


class PricingContextV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(1, ge=1)
    evaluation_date: Optional[date] = None
    selected_variant_price: Optional[Decimal] = None

    def to_domain(self) -> PricingContext:
        return PricingContext(
            quantity=self.quantity,
            evaluation_date=self.evaluation_date or date.today(),
            selected_variant_price=self.selected_variant_price,
        )


class ResolveInputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_id: int
    context: Optional[PricingContextV1] = None


class OffersInputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_id: int
    context: Optional[PricingContextV1] = None
    # offer the user clicked; None = auto-apply (first seasonal offer)
    offer_id: Optional[str] = None
    # offers shown as applied in the cart; only feeds displaySavings
    applied_offer_ids: List[str] = Field(default_factory=list)


class DiscountV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["Percentage", "Fixed", "percentage", "fixed"] = "Percentage"
    value: Decimal
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    priority: int = 1

    def to_domain(self) -> ProductDiscount:
        return ProductDiscount(
            kind=DiscountKind.parse(self.kind),
            value=self.value,
            start_date=self.start_date,
            end_date=self.end_date,
            priority=self.priority,
        )


class SeasonalDiscountV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["Percentage", "Fixed", "percentage", "fixed"] = "Percentage"
    value: Decimal
    active: bool = False


class ProductV1(BaseModel):
    """Candidate configuration as submitted by the admin form."""

    model_config = ConfigDict(extra="forbid")

    id: int = 0
    name: constr(strip_whitespace=True, min_length=1)  # type: ignore
    category: str
    base_price: Optional[Decimal] = None
    purchase_price: Decimal = Decimal("0")
    variation_price_override: Optional[Decimal] = None
    seasonal_discount: Optional[SeasonalDiscountV1] = None
    stock: int = Field(0, ge=0)
    discount: Optional[DiscountV1] = None
    previous_price: Optional[Decimal] = None
    min_stock: int = 5

    def to_domain(self) -> Product:
        seasonal = None
        if self.seasonal_discount is not None:
            seasonal = SeasonalDiscount(
                value=self.seasonal_discount.value,
                kind=DiscountKind.parse(self.seasonal_discount.kind),
                active=self.seasonal_discount.active,
            )
        return Product(
            id=self.id,
            name=self.name,
            category=self.category,
            base_price=self.base_price,
            purchase_price=self.purchase_price,
            variation_price_override=self.variation_price_override,
            seasonal_discount=seasonal,
            stock=self.stock,
            discount=self.discount.to_domain() if self.discount else None,
            previous_price=self.previous_price,
            min_stock=self.min_stock,
        )


class ValidateInputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product: ProductV1
    exclude_id: Optional[int] = None
    bulk: bool = False
    evaluation_date: Optional[date] = None


class BulkStrategyV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["percentage", "fixed", "range"]
    value: Optional[Decimal] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


class BulkUpdateInputV1(BaseModel):
    """Same body for preview and commit; commit re-runs the preview server-side."""

    model_config = ConfigDict(extra="forbid")

    strategy: Optional[BulkStrategyV1] = None
    category: Optional[str] = None
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    discount: Optional[DiscountV1] = None
    policy: Literal["skip", "override", "merge"] = "skip"
    evaluation_date: Optional[date] = None


class PricingOutputV1(BaseModel):
    """
    Strict top level, engine output travels as a blob in payload.
    """

    model_config = ConfigDict(extra="forbid")

    version: Literal["v1"] = "v1"
    status: Literal["ok", "warning", "blocking"]
    payload: Dict[str, Any]
