from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from storefront.pricing.domain.models import (
    DiscountKind,
    PricingContext,
    Product,
    ProductDiscount,
    SeasonalDiscount,
)
from storefront.pricing.offers.catalog import DEFAULT_CATALOG_PATH, OfferCatalog
from storefront.pricing.store.product_store import InMemoryProductStore


@pytest.fixture
def anyio_backend():
    # asyncio only, no trio needed
    return "asyncio"


@pytest.fixture
def fixed_today():
    # a Wednesday in January: no seasonal window, no weekend offer
    return date(2025, 1, 8)


@pytest.fixture
def ctx(fixed_today):
    return PricingContext(quantity=1, evaluation_date=fixed_today)


@pytest.fixture
def product():
    return Product(
        id=1,
        name="Basmati Rice 5kg",
        category="Groceries",
        base_price=Decimal("1000"),
        purchase_price=Decimal("700"),
        stock=20,
    )


@pytest.fixture
def seasonal_product(product):
    return Product(
        id=product.id,
        name=product.name,
        category=product.category,
        base_price=product.base_price,
        purchase_price=product.purchase_price,
        seasonal_discount=SeasonalDiscount(value=Decimal("20"), kind=DiscountKind.PERCENTAGE, active=True),
        stock=product.stock,
    )


@pytest.fixture
def catalog():
    return OfferCatalog.from_yaml_file(DEFAULT_CATALOG_PATH)


@pytest.fixture
def sample_products():
    return [
        Product(id=1, name="Apples", category="Fruits", base_price=Decimal("100"), purchase_price=Decimal("60"), stock=3),
        Product(id=2, name="Bananas", category="Fruits", base_price=Decimal("40"), purchase_price=Decimal("20"), stock=30),
        Product(
            id=3,
            name="Tomatoes",
            category="Vegetables",
            base_price=Decimal("200"),
            purchase_price=Decimal("120"),
            stock=2,
            discount=ProductDiscount(
                kind=DiscountKind.PERCENTAGE,
                value=Decimal("5"),
                start_date=date(2025, 1, 1),
                end_date=date(2025, 12, 31),
                priority=2,
            ),
        ),
    ]


@pytest.fixture
def store(sample_products):
    return InMemoryProductStore(sample_products, latency_ms=0)
