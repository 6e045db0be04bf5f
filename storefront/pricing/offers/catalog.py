from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate

from storefront.core.logging_config import logger

from ..domain.models import DiscountKind, Offer, OfferConditions, PricingContext, Product
from ..errors import ConfigurationError, InvalidProduct
from ..money import to_decimal

D = Decimal

PACKAGE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CATALOG_PATH = PACKAGE_DIR / "rules" / "offer_catalog.yaml"
SCHEMA_PATH = PACKAGE_DIR / "schemas" / "offer_catalog.schema.json"


@dataclass(frozen=True)
class DateWindow:
    """One calendar predicate: a set of months, weekdays, or a day range in a month."""

    months: Tuple[int, ...] = ()
    weekdays: Tuple[int, ...] = ()
    month: Optional[int] = None
    from_day: Optional[int] = None
    to_day: Optional[int] = None

    def contains(self, day: date) -> bool:
        if self.months:
            return day.month in self.months
        if self.weekdays:
            return day.weekday() in self.weekdays
        if self.month is not None:
            return day.month == self.month and self.from_day <= day.day <= self.to_day
        return False

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "DateWindow":
        if "months" in d:
            return DateWindow(months=tuple(int(m) for m in d["months"]))
        if "weekdays" in d:
            return DateWindow(weekdays=tuple(int(w) for w in d["weekdays"]))
        r = d["monthDayRange"]
        if int(r["fromDay"]) > int(r["toDay"]):
            raise ConfigurationError("monthDayRange fromDay must be <= toDay", {"window": r})
        return DateWindow(month=int(r["month"]), from_day=int(r["fromDay"]), to_day=int(r["toDay"]))


@dataclass(frozen=True)
class SeasonalWindow:
    id: str
    window: DateWindow
    offer: Offer


def _offer_from_dict(d: Dict[str, Any]) -> Offer:
    cond = d.get("conditions") or {}
    return Offer(
        id=str(d["id"]),
        kind=DiscountKind.parse(d["kind"]),
        value=to_decimal(d["value"], field=f"{d['id']}.value"),
        title=str(d["title"]),
        description=str(d.get("description") or ""),
        conditions=OfferConditions(
            min_quantity=int(cond.get("minQuantity", 1)),
            min_amount=to_decimal(cond.get("minAmount", "0"), field=f"{d['id']}.minAmount"),
        ),
        seasonal=bool(d.get("seasonal", False)),
        priority=int(d.get("priority", 1)),
    )


class OfferCatalog:
    """
    Generates the promotional offers a product may receive for a given
    quantity and date. Deterministic: same product + context, same list.

    Output order is base offers, then category offers, then seasonal offers.
    """

    def __init__(
        self,
        base_offers: List[Offer],
        category_offers: Dict[str, List[Offer]],
        seasonal_windows: List[SeasonalWindow],
        version: str = "v1",
    ):
        self.version = version
        self.base_offers = tuple(base_offers)
        self.category_offers = {k: tuple(v) for k, v in category_offers.items()}
        self.seasonal_windows = tuple(seasonal_windows)
        self._check_unique_ids()

    # -----------------
    # loading
    # -----------------

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OfferCatalog":
        with SCHEMA_PATH.open("r", encoding="utf-8") as f:
            schema = json.load(f)
        try:
            validate(instance=d, schema=schema)
        except SchemaValidationError as e:
            path = "/".join(str(p) for p in e.absolute_path)
            raise ConfigurationError(f"Offer catalog invalid at '{path}': {e.message}", {"path": path}) from e

        return cls(
            base_offers=[_offer_from_dict(x) for x in d.get("baseOffers") or []],
            category_offers={
                str(cat): [_offer_from_dict(x) for x in offers]
                for cat, offers in (d.get("categoryOffers") or {}).items()
            },
            seasonal_windows=[
                SeasonalWindow(
                    id=str(w["id"]),
                    window=DateWindow.from_dict(w["window"]),
                    offer=_offer_from_dict(w["offer"]),
                )
                for w in d.get("seasonalWindows") or []
            ],
            version=str(d.get("version") or "v1"),
        )

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> "OfferCatalog":
        catalog_path = Path(path)
        with catalog_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        catalog = cls.from_dict(raw)
        logger.bind(
            path=str(catalog_path),
            version=catalog.version,
            base=len(catalog.base_offers),
            categories=len(catalog.category_offers),
            windows=len(catalog.seasonal_windows),
        ).debug("offer_catalog_loaded")
        return catalog

    @classmethod
    def default(cls) -> "OfferCatalog":
        return _default_catalog()

    def _check_unique_ids(self) -> None:
        ids = [o.id for o in self.base_offers]
        for offers in self.category_offers.values():
            ids.extend(o.id for o in offers)
        ids.extend(w.offer.id for w in self.seasonal_windows)

        seen, dups = set(), []
        for oid in ids:
            if oid in seen and oid not in dups:
                dups.append(oid)
            seen.add(oid)
        if dups:
            raise ConfigurationError(f"Duplicate offer ids in catalog: {dups}", {"ids": dups})

    # -----------------
    # generation
    # -----------------

    def active_windows(self, day: date) -> List[SeasonalWindow]:
        return [w for w in self.seasonal_windows if w.window.contains(day)]

    def candidates(self, product: Product, context: PricingContext) -> List[Offer]:
        """All offers for the product's category and date, before threshold filtering."""
        out: List[Offer] = list(self.base_offers)
        out.extend(self.category_offers.get(product.category, ()))
        out.extend(w.offer for w in self.active_windows(context.day))
        return out

    def generate(self, product: Product, context: PricingContext) -> List[Offer]:
        if product.base_price is None:
            raise InvalidProduct("Product has no base price", {"productId": product.id})

        cart_value = to_decimal(product.base_price, field="base_price") * D(context.quantity)
        return [
            o
            for o in self.candidates(product, context)
            if o.conditions.min_quantity <= context.quantity and o.conditions.min_amount <= cart_value
        ]


@lru_cache(maxsize=1)
def _default_catalog() -> OfferCatalog:
    from storefront.core.settings import get_settings

    path = get_settings().offer_catalog_path or DEFAULT_CATALOG_PATH
    return OfferCatalog.from_yaml_file(path)


def generate_offers(
    product: Product,
    context: PricingContext,
    *,
    catalog: Optional[OfferCatalog] = None,
) -> List[Offer]:
    return (catalog or OfferCatalog.default()).generate(product, context)
