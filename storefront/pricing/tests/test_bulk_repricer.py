from datetime import date
from decimal import Decimal

import pytest

from storefront.observability.metrics import MemoryStats
from storefront.pricing.bulk.repricer import (
    BulkFilters,
    BulkRepricer,
    BulkStrategy,
    CategoryDiscount,
    commit_bulk_update,
    preview_bulk_update,
)
from storefront.pricing.domain.models import DiscountKind
from storefront.pricing.errors import ConfigurationError, ConflictType


FRUITS = BulkFilters(category="Fruits")
VEG_10 = CategoryDiscount(kind=DiscountKind.PERCENTAGE, value=Decimal("10"), start_date=date(2025, 1, 1), priority=2)


def _prices(rows):
    return [r.new_price for r in rows]


def test_fixed_increase_example(sample_products, fixed_today):
    rows = preview_bulk_update(sample_products, BulkStrategy.fixed(50), FRUITS, today=fixed_today)

    assert _prices(rows) == [Decimal("150.00"), Decimal("90.00")]
    assert [r.price_change for r in rows] == [Decimal("50.00"), Decimal("50.00")]
    assert all(r.committable for r in rows)


def test_percentage_with_guards(sample_products, fixed_today):
    strategy = BulkStrategy.percentage(50, max_price=120)
    rows = preview_bulk_update(sample_products, strategy, FRUITS, today=fixed_today)

    assert _prices(rows) == [Decimal("120.00"), Decimal("60.00")]


def test_range_strategy_clamps(sample_products, fixed_today):
    rows = preview_bulk_update(sample_products, BulkStrategy.range(50, 150), BulkFilters(category="all"), today=fixed_today)

    assert _prices(rows) == [Decimal("100.00"), Decimal("50.00"), Decimal("150.00")]


@pytest.mark.parametrize("lo, hi", [(100, 100), (150, 50)])
def test_range_needs_min_below_max(lo, hi):
    with pytest.raises(ConfigurationError):
        BulkStrategy.range(lo, hi)


def test_low_stock_filter(sample_products, fixed_today):
    rows = preview_bulk_update(
        sample_products, BulkStrategy.percentage(0), BulkFilters(low_stock_threshold=5), today=fixed_today
    )
    assert [r.product_id for r in rows] == [1, 3]


def test_global_floor_and_margin_guard(sample_products, fixed_today):
    rows = preview_bulk_update(sample_products, BulkStrategy.fixed(-500), today=fixed_today)

    assert _prices(rows) == [Decimal("1.00")] * 3
    assert not any(r.committable for r in rows)
    assert all(ConflictType.MARGIN_VIOLATION in r.report.types() for r in rows)


def test_category_discount_conflict_under_skip(sample_products, fixed_today):
    rows = preview_bulk_update(
        sample_products, None, BulkFilters(category="Vegetables"), discount=VEG_10, today=fixed_today
    )
    (row,) = rows

    assert row.has_discount
    assert row.has_conflicts
    assert row.conflict_type == "existing_discount"
    assert row.proposed_discount is None
    assert not row.committable


def test_category_discount_override(sample_products, fixed_today):
    (row,) = preview_bulk_update(
        sample_products,
        None,
        BulkFilters(category="Vegetables"),
        discount=VEG_10,
        policy="override",
        today=fixed_today,
    )

    assert row.has_conflicts
    assert row.committable
    assert row.proposed_discount.value == Decimal("10")
    assert row.discounted_price == Decimal("180.00")


def test_category_discount_above_bulk_cap_is_not_committable(sample_products, fixed_today):
    huge = CategoryDiscount(kind=DiscountKind.PERCENTAGE, value=Decimal("150"))
    rows = preview_bulk_update(sample_products, None, FRUITS, discount=huge, today=fixed_today)

    assert len(rows) == 2
    assert not any(r.committable for r in rows)
    assert all(r.report.types() == [ConflictType.BOUNDS_VIOLATION] for r in rows)


def test_negative_category_discount_is_reported(sample_products, fixed_today):
    negative = CategoryDiscount(kind=DiscountKind.FIXED, value=Decimal("-10"))
    (row, _) = preview_bulk_update(sample_products, None, FRUITS, discount=negative, today=fixed_today)

    assert row.has_discount
    assert not row.committable
    assert row.report.types() == [ConflictType.BOUNDS_VIOLATION]


def test_summarize(sample_products, fixed_today):
    rows = preview_bulk_update(
        sample_products, BulkStrategy.fixed(10), BulkFilters(), discount=VEG_10, today=fixed_today
    )
    s = BulkRepricer.summarize(rows)

    assert (s.rows, s.committable, s.conflicts) == (3, 2, 1)
    assert s.total_change == Decimal("30.00")
    assert s.skipped_ids == [3]


@pytest.mark.anyio
async def test_commit_writes_committable_rows(store, fixed_today):
    stats = MemoryStats()
    repricer = BulkRepricer(store, stats=stats)
    rows = repricer.preview(await store.get_all(), BulkStrategy.fixed(50), FRUITS, today=fixed_today)

    results = await repricer.commit(rows, today=fixed_today)

    assert [r.status for r in results] == ["updated", "updated"]
    apples = await store.get_by_id(1)
    assert apples.base_price == Decimal("150.00")
    assert apples.previous_price == Decimal("100.00")
    assert stats.counts[("bulk_commit_row", "updated")] == 2
    assert stats.row_counts == [2]


@pytest.mark.anyio
async def test_commit_skips_invalid_rows(store, fixed_today):
    products = await store.get_all()
    rows = preview_bulk_update(products, BulkStrategy.fixed(-500), today=fixed_today)

    results = await commit_bulk_update(rows, store=store, today=fixed_today)

    assert {r.status for r in results} == {"skipped"}
    assert results[0].code == "MarginViolation"
    assert (await store.get_by_id(1)).base_price == Decimal("100")


@pytest.mark.anyio
async def test_commit_isolates_row_failures(store, fixed_today):
    rows = preview_bulk_update(await store.get_all(), BulkStrategy.fixed(5), FRUITS, today=fixed_today)
    await store.delete(2)

    results = await commit_bulk_update(rows, store=store, today=fixed_today)

    assert [r.status for r in results] == ["updated", "failed"]
    assert results[1].code == "ProductNotFound"
    assert (await store.get_by_id(1)).base_price == Decimal("105.00")


@pytest.mark.anyio
async def test_commit_policy_overrides_preview_policy(store, fixed_today):
    rows = preview_bulk_update(
        await store.get_all(), None, BulkFilters(category="Vegetables"), discount=VEG_10, today=fixed_today
    )
    assert not rows[0].committable

    results = await commit_bulk_update(rows, "override", store=store, today=fixed_today)

    assert results[0].status == "updated"
    tomatoes = await store.get_by_id(3)
    assert tomatoes.discount.value == Decimal("10")
    assert tomatoes.base_price == Decimal("200")


@pytest.mark.anyio
async def test_commit_rejects_duplicate_rows(store, fixed_today):
    rows = preview_bulk_update(await store.get_all(), BulkStrategy.fixed(5), FRUITS, today=fixed_today)

    with pytest.raises(ConfigurationError) as exc:
        await commit_bulk_update(rows + rows[:1], store=store, today=fixed_today)

    assert exc.value.meta == {"productIds": [1]}
    assert (await store.get_by_id(1)).base_price == Decimal("100")


@pytest.mark.anyio
async def test_commit_without_store_is_a_configuration_error(sample_products, fixed_today):
    rows = preview_bulk_update(sample_products, BulkStrategy.fixed(1), today=fixed_today)
    with pytest.raises(ConfigurationError):
        await BulkRepricer().commit(rows)
