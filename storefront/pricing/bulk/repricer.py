from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from storefront.core.logging_config import logger
from storefront.observability.metrics import NullStats, StatsCollector

from ..calculators.discount import apply_discount
from ..domain.models import DEFAULT_LIMITS, ConflictPolicy, DiscountKind, PriceLimits, Product, ProductDiscount
from ..errors import ConfigurationError, PricingError
from ..money import ZERO, clamp, quantize, to_decimal
from ..store.product_store import ProductRepository
from ..validation.conflicts import ConflictReport, ConflictValidator, resolve_category_discount

D = Decimal

STRATEGY_PERCENTAGE = "percentage"
STRATEGY_FIXED = "fixed"
STRATEGY_RANGE = "range"

CONFLICT_EXISTING_DISCOUNT = "existing_discount"


@dataclass(frozen=True)
class BulkStrategy:
    """
    percentage: price * (1 + value/100)
    fixed:      price + value
    range:      clamp(price, min_price, max_price)

    min_price / max_price act as extra guards for percentage and fixed.
    """

    kind: str
    value: D = ZERO
    min_price: Optional[D] = None
    max_price: Optional[D] = None

    def __post_init__(self) -> None:
        if self.kind not in (STRATEGY_PERCENTAGE, STRATEGY_FIXED, STRATEGY_RANGE):
            raise ConfigurationError(f"Unknown bulk strategy: {self.kind!r}", {"strategy": self.kind})
        if self.kind == STRATEGY_RANGE:
            if self.min_price is None or self.max_price is None:
                raise ConfigurationError("Range strategy needs both minimum and maximum price")
            if self.min_price >= self.max_price:
                raise ConfigurationError(
                    "Maximum price must be greater than minimum price",
                    {"minPrice": str(self.min_price), "maxPrice": str(self.max_price)},
                )
        elif self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ConfigurationError(
                "Minimum price guard exceeds maximum price guard",
                {"minPrice": str(self.min_price), "maxPrice": str(self.max_price)},
            )

    @classmethod
    def percentage(cls, delta: Any, *, min_price: Any = None, max_price: Any = None) -> "BulkStrategy":
        return cls(STRATEGY_PERCENTAGE, to_decimal(delta, field="value"), _opt(min_price), _opt(max_price))

    @classmethod
    def fixed(cls, delta: Any, *, min_price: Any = None, max_price: Any = None) -> "BulkStrategy":
        return cls(STRATEGY_FIXED, to_decimal(delta, field="value"), _opt(min_price), _opt(max_price))

    @classmethod
    def range(cls, min_price: Any, max_price: Any) -> "BulkStrategy":
        return cls(STRATEGY_RANGE, ZERO, _opt(min_price), _opt(max_price))

    def apply(self, price: D) -> D:
        if self.kind == STRATEGY_PERCENTAGE:
            new = price * (D("1") + self.value / D("100"))
        elif self.kind == STRATEGY_FIXED:
            new = price + self.value
        else:
            return clamp(price, self.min_price, self.max_price)

        if self.min_price is not None and new < self.min_price:
            new = self.min_price
        if self.max_price is not None and new > self.max_price:
            new = self.max_price
        return new


def _opt(value: Any) -> Optional[D]:
    if value is None or value == "":
        return None
    return to_decimal(value, field="price guard")


@dataclass(frozen=True)
class BulkFilters:
    category: Optional[str] = None  # None / "all" = every category
    low_stock_threshold: Optional[int] = None

    def matches(self, product: Product) -> bool:
        if self.category and self.category != "all" and product.category != self.category:
            return False
        if self.low_stock_threshold is not None and product.stock > self.low_stock_threshold:
            return False
        return True


@dataclass(frozen=True)
class CategoryDiscount:
    kind: DiscountKind
    value: D
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    priority: int = 1

    def as_product_discount(self) -> ProductDiscount:
        return ProductDiscount(
            kind=DiscountKind.parse(self.kind),
            value=to_decimal(self.value, field="discount.value"),
            start_date=self.start_date,
            end_date=self.end_date,
            priority=self.priority,
        )


@dataclass(frozen=True)
class PreviewRow:
    product_id: int
    name: str
    current_price: D
    new_price: D
    price_change: D
    has_discount: bool
    has_conflicts: bool
    conflict_type: Optional[str]
    report: ConflictReport
    committable: bool
    policy: ConflictPolicy
    product: Product
    proposed_discount: Optional[ProductDiscount] = None
    discounted_price: Optional[D] = None
    category_discount: Optional[CategoryDiscount] = None


@dataclass(frozen=True)
class UpdateResult:
    product_id: int
    status: str  # "updated" | "skipped" | "failed"
    product: Optional[Product] = None
    code: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "updated"


@dataclass(frozen=True)
class BulkSummary:
    rows: int
    committable: int
    conflicts: int
    invalid: int
    warnings: int
    total_change: D
    skipped_ids: List[int] = field(default_factory=list)


class BulkRepricer:
    """
    Applies one repricing strategy (and optionally a category-wide discount)
    to many products. Preview is pure; commit writes through the store.
    """

    def __init__(
        self,
        store: Optional[ProductRepository] = None,
        limits: Optional[PriceLimits] = None,
        stats: Optional[StatsCollector] = None,
    ):
        self.store = store
        self.limits = limits or DEFAULT_LIMITS
        self.stats = stats or NullStats()
        self.validator = ConflictValidator(self.limits)

    # -----------------
    # preview
    # -----------------

    def preview(
        self,
        products: Sequence[Product],
        strategy: Optional[BulkStrategy],
        filters: Optional[BulkFilters] = None,
        *,
        discount: Optional[CategoryDiscount] = None,
        policy: ConflictPolicy | str = ConflictPolicy.SKIP,
        today: Optional[date] = None,
    ) -> List[PreviewRow]:
        filters = filters or BulkFilters()
        policy = ConflictPolicy(policy)
        today = today or date.today()

        selected = [p for p in products if filters.matches(p)]
        rows = [self._evaluate(p, self._reprice(p, strategy), discount, policy, products, today) for p in selected]

        self.stats.observe_rows(len(rows))
        self.stats.record("bulk_preview", "ok" if rows else "empty")
        logger.bind(
            strategy=strategy.kind if strategy else None,
            category=filters.category,
            rows=len(rows),
            committable=sum(1 for r in rows if r.committable),
            conflicts=sum(1 for r in rows if r.has_conflicts),
            policy=policy.value,
        ).info("bulk_preview")
        return rows

    def _reprice(self, product: Product, strategy: Optional[BulkStrategy]) -> Optional[D]:
        if product.base_price is None:
            return None
        current = quantize(product.base_price)
        new = strategy.apply(current) if strategy is not None else current
        # never below the global floor (Rs. 1) or above the ceiling
        return quantize(clamp(new, self.limits.min_price, self.limits.max_price))

    def _evaluate(
        self,
        product: Product,
        new_price: Optional[D],
        discount: Optional[CategoryDiscount],
        policy: ConflictPolicy,
        peers: Sequence[Product],
        today: date,
    ) -> PreviewRow:
        if product.base_price is None or new_price is None:
            report = self.validator.validate(product, peers, product.id, bulk=True, today=today)
            return PreviewRow(
                product_id=product.id,
                name=product.name,
                current_price=ZERO,
                new_price=ZERO,
                price_change=ZERO,
                has_discount=False,
                has_conflicts=False,
                conflict_type=None,
                report=report,
                committable=False,
                policy=policy,
                product=product,
                category_discount=discount,
            )

        current = quantize(product.base_price)
        new = quantize(new_price)

        proposed: Optional[ProductDiscount] = None
        has_conflicts = False
        discount_changes = False
        if discount is not None and discount.value < 0:
            # let the validator report it
            proposed = discount.as_product_discount()
            discount_changes = True
        elif discount is not None and discount.value > 0:
            resolution = resolve_category_discount(product, discount.as_product_discount(), policy, today=today)
            has_conflicts = resolution.has_conflict
            discount_changes = resolution.changes_discount
            proposed = resolution.discount

        candidate = replace(product, base_price=new)
        if discount_changes:
            candidate = replace(candidate, discount=proposed)
        report = self.validator.validate(candidate, peers, product.id, bulk=True, today=today)

        committable = report.is_valid and (not has_conflicts or policy != ConflictPolicy.SKIP)

        return PreviewRow(
            product_id=product.id,
            name=product.name,
            current_price=current,
            new_price=new,
            price_change=quantize(new - current),
            has_discount=discount is not None and discount.value != 0,
            has_conflicts=has_conflicts,
            conflict_type=CONFLICT_EXISTING_DISCOUNT if has_conflicts else None,
            report=report,
            committable=committable,
            policy=policy,
            product=product,
            proposed_discount=proposed,
            discounted_price=apply_discount(new, proposed) if proposed is not None else None,
            category_discount=discount,
        )

    # -----------------
    # commit
    # -----------------

    async def commit(
        self,
        rows: Sequence[PreviewRow],
        policy: ConflictPolicy | str | None = None,
        *,
        today: Optional[date] = None,
    ) -> List[UpdateResult]:
        """
        Best-effort: every committable row is written independently and
        concurrently. A failing row does not roll back the others.
        """
        if self.store is None:
            raise ConfigurationError("BulkRepricer.commit needs a product store")
        ids = [r.product_id for r in rows]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ConfigurationError("Each product may appear only once per commit", {"productIds": duplicates})

        today = today or date.today()
        peers = [r.product for r in rows]
        rows = [self._under_policy(r, policy, peers, today) for r in rows]

        results: Dict[int, UpdateResult] = {}
        pending: List[PreviewRow] = []
        for r in rows:
            if r.committable:
                pending.append(r)
            else:
                results[r.product_id] = UpdateResult(
                    product_id=r.product_id,
                    status="skipped",
                    code=(r.report.conflicts[0].type.value if r.report.conflicts else r.conflict_type),
                )

        outcomes = await asyncio.gather(
            *(self.store.update(r.product_id, self._changes(r)) for r in pending),
            return_exceptions=True,
        )

        for r, outcome in zip(pending, outcomes):
            if isinstance(outcome, PricingError):
                results[r.product_id] = UpdateResult(r.product_id, "failed", code=outcome.code, error=outcome.message)
            elif isinstance(outcome, Exception):
                logger.bind(product_id=r.product_id, error=repr(outcome)).error("bulk_commit_row_failed")
                results[r.product_id] = UpdateResult(r.product_id, "failed", code="StoreError", error=str(outcome))
            else:
                results[r.product_id] = UpdateResult(r.product_id, "updated", product=outcome)

        ordered = [results[r.product_id] for r in rows]
        for res in ordered:
            self.stats.record("bulk_commit_row", res.status)

        logger.bind(
            rows=len(ordered),
            updated=sum(1 for x in ordered if x.status == "updated"),
            skipped=sum(1 for x in ordered if x.status == "skipped"),
            failed=sum(1 for x in ordered if x.status == "failed"),
        ).info("bulk_commit")
        return ordered

    def _under_policy(
        self,
        row: PreviewRow,
        policy: ConflictPolicy | str | None,
        peers: Sequence[Product],
        today: date,
    ) -> PreviewRow:
        if policy is None or ConflictPolicy(policy) == row.policy:
            return row
        new_price = row.new_price if row.product.base_price is not None else None
        return self._evaluate(row.product, new_price, row.category_discount, ConflictPolicy(policy), peers, today)

    @staticmethod
    def _changes(row: PreviewRow) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        if row.new_price != row.current_price:
            changes["base_price"] = row.new_price
            changes["previous_price"] = row.current_price
        if row.proposed_discount is not None:
            changes["discount"] = row.proposed_discount
        return changes

    # -----------------
    # summary
    # -----------------

    @staticmethod
    def summarize(rows: Sequence[PreviewRow]) -> BulkSummary:
        return BulkSummary(
            rows=len(rows),
            committable=sum(1 for r in rows if r.committable),
            conflicts=sum(1 for r in rows if r.has_conflicts),
            invalid=sum(1 for r in rows if not r.report.is_valid),
            warnings=sum(len(r.report.warnings) for r in rows),
            total_change=quantize(sum((r.price_change for r in rows), ZERO)),
            skipped_ids=[r.product_id for r in rows if not r.committable],
        )


def preview_bulk_update(
    products: Sequence[Product],
    strategy: Optional[BulkStrategy],
    filters: Optional[BulkFilters] = None,
    *,
    discount: Optional[CategoryDiscount] = None,
    policy: ConflictPolicy | str = ConflictPolicy.SKIP,
    limits: Optional[PriceLimits] = None,
    today: Optional[date] = None,
) -> List[PreviewRow]:
    return BulkRepricer(limits=limits).preview(
        products, strategy, filters, discount=discount, policy=policy, today=today
    )


async def commit_bulk_update(
    rows: Sequence[PreviewRow],
    policy: ConflictPolicy | str | None = None,
    *,
    store: ProductRepository,
    stats: Optional[StatsCollector] = None,
    limits: Optional[PriceLimits] = None,
    today: Optional[date] = None,
) -> List[UpdateResult]:
    return await BulkRepricer(store, limits, stats).commit(rows, policy, today=today)
