from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from storefront.pricing.domain.models import (
    ConflictPolicy,
    DiscountKind,
    PricingContext,
    Product,
    ProductDiscount,
    SeasonalDiscount,
)
from storefront.pricing.engine.tier_resolver import resolve_price
from storefront.pricing.errors import ConflictType
from storefront.pricing.validation.conflicts import (
    ConflictValidator,
    resolve_category_discount,
    validate_configuration,
)


def _pct(value, **kw):
    return ProductDiscount(kind=DiscountKind.PERCENTAGE, value=Decimal(value), **kw)


def _fixed(value, **kw):
    return ProductDiscount(kind=DiscountKind.FIXED, value=Decimal(value), **kw)


def test_seasonal_twenty_percent_is_valid(seasonal_product, fixed_today):
    r = validate_configuration(seasonal_product, today=fixed_today)

    assert r.is_valid
    assert r.conflicts == []
    assert r.warnings == []


def test_seasonal_forty_percent_breaks_margin(seasonal_product, fixed_today):
    p = replace(seasonal_product, seasonal_discount=SeasonalDiscount(Decimal("40"), DiscountKind.PERCENTAGE, True))
    r = validate_configuration(p, today=fixed_today)

    assert not r.is_valid
    assert r.types() == [ConflictType.MARGIN_VIOLATION]
    assert r.conflicts[0].meta["tier"] == "seasonal"


def test_price_at_or_below_purchase_reported_once(product, fixed_today):
    r = validate_configuration(replace(product, base_price=Decimal("700")), today=fixed_today)

    assert r.types() == [ConflictType.MARGIN_VIOLATION]


@pytest.mark.parametrize("price", ["0.50", "200000"])
def test_price_bounds(price, fixed_today):
    p = Product(id=5, name="x", category="Snacks", base_price=Decimal(price))
    r = validate_configuration(p, today=fixed_today)

    assert ConflictType.BOUNDS_VIOLATION in r.types()


def test_percentage_cap_is_ninety_for_products_hundred_for_bulk(product, fixed_today):
    p = replace(product, purchase_price=Decimal("0"), discount=_pct("95"))

    single = validate_configuration(p, today=fixed_today)
    bulk = validate_configuration(p, bulk=True, today=fixed_today)

    assert single.types() == [ConflictType.BOUNDS_VIOLATION]
    assert bulk.is_valid


def test_bulk_percentage_above_hundred_is_rejected(product, fixed_today):
    p = replace(product, purchase_price=Decimal("0"), discount=_pct("101"))
    r = validate_configuration(p, bulk=True, today=fixed_today)

    assert r.types() == [ConflictType.BOUNDS_VIOLATION]
    assert r.conflicts[0].meta["max"] == "100"


def test_full_bulk_discount_hits_price_floor(fixed_today):
    p = Product(id=5, name="x", category="Snacks", base_price=Decimal("100"), discount=_pct("100"))
    r = validate_configuration(p, bulk=True, today=fixed_today)

    assert not r.is_valid
    assert r.types() == [ConflictType.BOUNDS_VIOLATION]
    assert r.conflicts[0].meta["discountedPrice"] == "0.00"


def test_fixed_discount_must_be_below_price(product, fixed_today):
    r = validate_configuration(replace(product, discount=_fixed("1000")), today=fixed_today)
    assert r.types() == [ConflictType.BOUNDS_VIOLATION]


def test_fixed_discount_is_checked_against_seasonal_price(fixed_today):
    p = Product(
        id=5,
        name="x",
        category="Snacks",
        base_price=Decimal("1000"),
        seasonal_discount=SeasonalDiscount(Decimal("50"), DiscountKind.PERCENTAGE, True),
        discount=_fixed("600"),
    )
    r = validate_configuration(p, today=fixed_today)

    assert r.types() == [ConflictType.BOUNDS_VIOLATION]
    assert r.conflicts[0].meta["price"] == "500.00"


def test_fixed_seasonal_not_below_price_is_rejected(fixed_today):
    p = Product(
        id=5,
        name="x",
        category="Snacks",
        base_price=Decimal("100"),
        seasonal_discount=SeasonalDiscount(Decimal("500"), DiscountKind.FIXED, True),
    )
    r = validate_configuration(p, today=fixed_today)

    assert r.types() == [ConflictType.BOUNDS_VIOLATION]
    assert r.conflicts[0].meta["price"] == "100.00"


def test_fixed_seasonal_is_checked_against_variation_price(fixed_today):
    p = Product(
        id=5,
        name="x",
        category="Snacks",
        base_price=Decimal("1000"),
        variation_price_override=Decimal("300"),
        seasonal_discount=SeasonalDiscount(Decimal("300"), DiscountKind.FIXED, False),
    )
    r = validate_configuration(p, today=fixed_today)

    assert r.types() == [ConflictType.BOUNDS_VIOLATION]


def test_seasonal_price_below_floor_is_rejected(fixed_today):
    p = Product(
        id=5,
        name="x",
        category="Snacks",
        base_price=Decimal("100"),
        seasonal_discount=SeasonalDiscount(Decimal("100"), DiscountKind.PERCENTAGE, True),
    )
    r = validate_configuration(p, today=fixed_today)

    assert r.types() == [ConflictType.BOUNDS_VIOLATION]
    assert r.conflicts[0].meta["price"] == "0.00"


def test_negative_discount(product, fixed_today):
    r = validate_configuration(replace(product, discount=_pct("-5")), today=fixed_today)
    assert r.types() == [ConflictType.BOUNDS_VIOLATION]


def test_configuration_conflicts(product, fixed_today):
    d = _pct("5", start_date=date(2025, 2, 1), end_date=date(2025, 1, 1), priority=7)
    r = validate_configuration(replace(product, discount=d), today=fixed_today)

    assert r.types() == [ConflictType.CONFIGURATION_CONFLICT, ConflictType.CONFIGURATION_CONFLICT]


def test_discounted_price_must_stay_above_purchase(product, fixed_today):
    r = validate_configuration(replace(product, discount=_pct("35")), today=fixed_today)

    assert r.types() == [ConflictType.MARGIN_VIOLATION]
    assert r.conflicts[0].meta["discountedPrice"] == "650.00"


def test_thin_margin_is_a_warning(product, fixed_today):
    r = validate_configuration(replace(product, base_price=Decimal("760")), today=fixed_today)

    assert r.is_valid
    assert any("below 10%" in w for w in r.warnings)


def test_overlapping_peer_discount_warns(sample_products, fixed_today):
    candidate = Product(
        id=0,
        name="Carrots",
        category="Vegetables",
        base_price=Decimal("300"),
        purchase_price=Decimal("100"),
        discount=_pct("10", start_date=date(2025, 1, 1), end_date=date(2025, 2, 15), priority=2),
    )

    r = validate_configuration(candidate, sample_products, today=fixed_today)
    assert r.is_valid
    assert any(w.startswith("DiscountConflict") for w in r.warnings)

    # the product being edited is not its own peer
    r = validate_configuration(candidate, sample_products, exclude_id=3, today=fixed_today)
    assert r.warnings == []

    r = validate_configuration(replace(candidate, discount=replace(candidate.discount, priority=1)), sample_products, today=fixed_today)
    assert r.warnings == []


def test_missing_base_price_never_raises(product, fixed_today):
    r = validate_configuration(replace(product, base_price=None), today=fixed_today)

    assert not r.is_valid
    assert r.types() == [ConflictType.INVALID_PRODUCT]


def test_malformed_seasonal_becomes_conflict(product, fixed_today):
    p = replace(product, seasonal_discount=SeasonalDiscount(Decimal("150"), DiscountKind.PERCENTAGE, True))
    r = validate_configuration(p, today=fixed_today)

    assert r.types() == [ConflictType.INVALID_PRODUCT]


@pytest.mark.parametrize("seasonal", ["0", "5", "10", "20", "25"])
@pytest.mark.parametrize("discount", [None, "5", "10"])
def test_valid_configurations_resolve_above_purchase(product, fixed_today, seasonal, discount):
    p = replace(
        product,
        seasonal_discount=SeasonalDiscount(Decimal(seasonal), DiscountKind.PERCENTAGE, True),
        discount=_pct(discount) if discount else None,
    )
    r = ConflictValidator().validate(p, today=fixed_today)
    if r.is_valid:
        tier = resolve_price(p, PricingContext(evaluation_date=fixed_today))
        assert tier.final_price > p.purchase_price


# -----------------------------
# category-wide discount conflicts
# -----------------------------


def test_no_existing_discount_applies(sample_products, fixed_today):
    res = resolve_category_discount(sample_products[0], _pct("10"), "skip", today=fixed_today)

    assert res.action == "apply"
    assert not res.has_conflict


@pytest.mark.parametrize(
    "policy, action, value",
    [
        (ConflictPolicy.SKIP, "skip", None),
        (ConflictPolicy.OVERRIDE, "override", Decimal("3")),
        (ConflictPolicy.MERGE, "merge", Decimal("5")),
    ],
)
def test_existing_discount_policies(sample_products, fixed_today, policy, action, value):
    tomatoes = sample_products[2]  # 5% running all year
    res = resolve_category_discount(tomatoes, _pct("3"), policy, today=fixed_today)

    assert res.has_conflict
    assert res.conflict.type == ConflictType.DISCOUNT_CONFLICT
    assert res.action == action
    assert (res.discount.value if res.discount else None) == value


def test_merge_across_kinds_keeps_larger_reduction(fixed_today):
    p = Product(id=1, name="x", category="Snacks", base_price=Decimal("200"), discount=_pct("5"))

    bigger_fixed = resolve_category_discount(p, _fixed("20"), "merge", today=fixed_today)
    assert (bigger_fixed.discount.kind, bigger_fixed.discount.value) == (DiscountKind.FIXED, Decimal("20"))

    p = replace(p, discount=_fixed("30"))
    keeps_existing = resolve_category_discount(p, _pct("10", priority=3), "merge", today=fixed_today)
    assert (keeps_existing.discount.kind, keeps_existing.discount.value) == (DiscountKind.FIXED, Decimal("30"))
    assert keeps_existing.discount.priority == 3


def test_expired_discount_is_not_a_conflict(fixed_today):
    old = _pct("5", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))
    p = Product(id=1, name="x", category="Snacks", base_price=Decimal("200"), discount=old)

    assert resolve_category_discount(p, _pct("10"), "skip", today=fixed_today).action == "apply"
