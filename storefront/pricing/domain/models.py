from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..errors import InvalidAmount

D = Decimal


class DiscountKind(str, Enum):
    PERCENTAGE = "Percentage"
    FIXED = "Fixed"

    @classmethod
    def parse(cls, raw: Union[str, "DiscountKind"]) -> "DiscountKind":
        if isinstance(raw, DiscountKind):
            return raw
        s = str(raw).strip().lower()
        # UI sends "percentage" / "fixed" / "Fixed Amount"
        if s.startswith("percent"):
            return cls.PERCENTAGE
        if s.startswith("fixed"):
            return cls.FIXED
        raise ValueError(f"Unknown discount kind: {raw!r}")


class DealKind(str, Enum):
    BOGO = "BOGO"
    BUNDLE = "Bundle"


class ConflictPolicy(str, Enum):
    SKIP = "skip"
    OVERRIDE = "override"
    MERGE = "merge"


def as_day(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class SeasonalDiscount:
    value: D
    kind: DiscountKind = DiscountKind.PERCENTAGE
    active: bool = False


@dataclass(frozen=True)
class ProductDiscount:
    kind: DiscountKind
    value: D
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    priority: int = 1

    def is_active_on(self, day: Union[date, datetime]) -> bool:
        d = as_day(day)
        if self.value <= 0:
            return False
        if self.start_date is not None and d < self.start_date:
            return False
        if self.end_date is not None and d > self.end_date:
            return False
        return True

    def overlaps(self, other: "ProductDiscount") -> bool:
        # open ends count as unbounded
        if self.end_date is not None and other.start_date is not None and self.end_date < other.start_date:
            return False
        if other.end_date is not None and self.start_date is not None and other.end_date < self.start_date:
            return False
        return True


@dataclass(frozen=True)
class Deal:
    kind: DealKind
    buy_qty: int
    pay_qty: int

    @staticmethod
    def bogo() -> "Deal":
        return Deal(kind=DealKind.BOGO, buy_qty=2, pay_qty=1)

    @staticmethod
    def bundle(spec: str) -> "Deal":
        """Parse a bundle label such as '3 for 2'."""
        parts = [p.strip() for p in str(spec).lower().split("for")]
        if len(parts) != 2:
            raise ValueError(f"Bundle deal must look like 'N for M': {spec!r}")
        try:
            buy, pay = int(parts[0]), int(parts[1])
        except ValueError:
            raise ValueError(f"Bundle deal must look like 'N for M': {spec!r}")
        if buy <= 0 or pay < 0 or pay >= buy:
            raise ValueError(f"Bundle deal needs N > M >= 0: {spec!r}")
        return Deal(kind=DealKind.BUNDLE, buy_qty=buy, pay_qty=pay)

    @property
    def title(self) -> str:
        if self.kind == DealKind.BOGO:
            return "Buy 1 Get 1 FREE"
        return f"{self.buy_qty} for {self.pay_qty} Deal"


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    category: str
    base_price: Optional[D]
    purchase_price: D = D("0")
    variation_price_override: Optional[D] = None
    seasonal_discount: Optional[SeasonalDiscount] = None
    stock: int = 0
    discount: Optional[ProductDiscount] = None
    previous_price: Optional[D] = None
    deal: Optional[Deal] = None
    min_stock: int = 5

    @property
    def price(self) -> Optional[D]:
        """Selling price as configured in the admin console (= base price)."""
        return self.base_price


@dataclass(frozen=True)
class PricingContext:
    quantity: int = 1
    evaluation_date: Union[date, datetime] = field(default_factory=date.today)
    selected_variant_price: Optional[D] = None

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise InvalidAmount("quantity must be an integer >= 1", {"quantity": repr(self.quantity)})

    @property
    def day(self) -> date:
        return as_day(self.evaluation_date)


@dataclass(frozen=True)
class OfferConditions:
    min_quantity: int = 1
    min_amount: D = D("0")


@dataclass(frozen=True)
class Offer:
    id: str
    kind: DiscountKind
    value: D
    title: str
    description: str = ""
    conditions: OfferConditions = field(default_factory=OfferConditions)
    seasonal: bool = False
    priority: int = 1


@dataclass(frozen=True)
class TierResult:
    base_price: D
    variation_price: Optional[D]
    seasonal_price: Optional[D]
    final_price: D
    applied_tier_name: str  # "base" | "variation" | "seasonal"
    steps: List[str] = field(default_factory=list)

    def line_total(self, quantity: int) -> D:
        return (self.final_price * D(quantity)).quantize(D("0.01"))


@dataclass(frozen=True)
class PriceLimits:
    min_price: D = D("1")
    max_price: D = D("100000")
    max_product_discount_pct: D = D("90")
    max_bulk_discount_pct: D = D("100")
    min_margin_warning_pct: D = D("10")

    @classmethod
    def from_settings(cls, settings: Any = None) -> "PriceLimits":
        if settings is None:
            from storefront.core.settings import get_settings

            settings = get_settings()
        return cls(
            min_price=D(str(settings.min_price)),
            max_price=D(str(settings.max_price)),
            max_product_discount_pct=D(str(settings.max_product_discount_pct)),
            max_bulk_discount_pct=D(str(settings.max_bulk_discount_pct)),
            min_margin_warning_pct=D(str(settings.min_margin_warning_pct)),
        )


DEFAULT_LIMITS = PriceLimits()


def product_from_dict(d: Dict[str, Any]) -> Product:
    """
    Build a Product from a mock-data style record:
      {"id": 1, "name": "...", "category": "Fruits", "price": "250",
       "purchasePrice": "180", "seasonalDiscount": "10",
       "seasonalDiscountType": "Percentage", "seasonalDiscountActive": true,
       "discountType": "Percentage", "discountValue": "5",
       "discountStartDate": "2025-01-01", "discountEndDate": "2025-01-31",
       "discountPriority": 2, "dealType": "Bundle", "dealValue": "3 for 2"}
    """

    def dec(key: str) -> Optional[D]:
        v = d.get(key)
        if v is None or v == "":
            return None
        return D(str(v))

    def day(key: str) -> Optional[date]:
        v = d.get(key)
        if not v:
            return None
        if isinstance(v, date):
            return as_day(v)
        return date.fromisoformat(str(v)[:10])

    base = dec("basePrice")
    if base is None:
        base = dec("price")

    seasonal = None
    if dec("seasonalDiscount") is not None:
        seasonal = SeasonalDiscount(
            value=dec("seasonalDiscount"),
            kind=DiscountKind.parse(d.get("seasonalDiscountType") or "Fixed"),
            active=bool(d.get("seasonalDiscountActive", False)),
        )

    discount = None
    if dec("discountValue") is not None:
        discount = ProductDiscount(
            kind=DiscountKind.parse(d.get("discountType") or "Percentage"),
            value=dec("discountValue"),
            start_date=day("discountStartDate"),
            end_date=day("discountEndDate"),
            priority=int(d.get("discountPriority") or 1),
        )

    deal = None
    if d.get("dealType") == DealKind.BOGO.value:
        deal = Deal.bogo()
    elif d.get("dealType") == DealKind.BUNDLE.value and d.get("dealValue"):
        deal = Deal.bundle(str(d["dealValue"]))

    return Product(
        id=int(d["id"]),
        name=str(d.get("name") or ""),
        category=str(d.get("category") or ""),
        base_price=base,
        purchase_price=dec("purchasePrice") or D("0"),
        variation_price_override=dec("variationPrice"),
        seasonal_discount=seasonal,
        stock=int(d.get("stock") or 0),
        discount=discount,
        previous_price=dec("previousPrice"),
        deal=deal,
        min_stock=int(d.get("minStock") or 5),
    )
