from __future__ import annotations

import time
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from storefront.core.logging_config import logger
from storefront.core.settings import get_settings
from storefront.observability.metrics import PrometheusStats, StatsCollector

from ..bulk.repricer import BulkFilters, BulkRepricer, BulkStrategy, CategoryDiscount, PreviewRow, UpdateResult
from ..calculators.deals import deal_savings, price_change_percent
from ..calculators.margin import profit_metrics
from ..domain.models import Offer, PriceLimits, PricingContext, Product, TierResult
from ..engine.tier_resolver import PriceTierResolver
from ..errors import InvalidAmount, PricingError, ProductNotFound
from ..offers.catalog import OfferCatalog
from ..offers.selector import OfferSelector
from ..schemas.pricing_v1 import (
    BulkUpdateInputV1,
    OffersInputV1,
    PricingOutputV1,
    ResolveInputV1,
    ValidateInputV1,
)
from ..store.product_store import InMemoryProductStore, ProductRepository
from ..validation.conflicts import ConflictReport, ConflictValidator

router = APIRouter(prefix="/api/pricing", tags=["pricing"])

_store: Optional[InMemoryProductStore] = None
_stats = PrometheusStats()


# ----------------------------
# Dependencies
# ----------------------------
def get_store() -> ProductRepository:
    global _store
    if _store is None:
        _store = InMemoryProductStore()
    return _store


def get_limits() -> PriceLimits:
    return PriceLimits.from_settings(get_settings())


def get_stats() -> StatsCollector:
    return _stats


# ----------------------------
# Serialization (Decimal -> str, camelCase payload)
# ----------------------------
def _money(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def product_payload(p: Product) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": p.id,
        "name": p.name,
        "category": p.category,
        "price": _money(p.base_price),
        "purchasePrice": _money(p.purchase_price),
        "variationPrice": _money(p.variation_price_override),
        "stock": p.stock,
        "minStock": p.min_stock,
        "lowStock": p.stock <= p.min_stock,
        "previousPrice": _money(p.previous_price),
        "priceChangePercent": _money(price_change_percent(p.previous_price, p.base_price)),
        "deal": p.deal.title if p.deal else None,
    }
    if p.seasonal_discount is not None:
        d["seasonalDiscount"] = {
            "kind": p.seasonal_discount.kind.value,
            "value": _money(p.seasonal_discount.value),
            "active": p.seasonal_discount.active,
        }
    if p.discount is not None:
        d["discount"] = {
            "kind": p.discount.kind.value,
            "value": _money(p.discount.value),
            "startDate": p.discount.start_date.isoformat() if p.discount.start_date else None,
            "endDate": p.discount.end_date.isoformat() if p.discount.end_date else None,
            "priority": p.discount.priority,
        }
    return d


def tier_payload(t: TierResult) -> Dict[str, Any]:
    return {
        "basePrice": _money(t.base_price),
        "variationPrice": _money(t.variation_price),
        "seasonalPrice": _money(t.seasonal_price),
        "finalPrice": _money(t.final_price),
        "appliedTier": t.applied_tier_name,
        "priceBreakdown": list(t.steps),
    }


def offer_payload(o: Offer) -> Dict[str, Any]:
    return {
        "id": o.id,
        "kind": o.kind.value,
        "value": _money(o.value),
        "title": o.title,
        "description": o.description,
        "minQuantity": o.conditions.min_quantity,
        "minAmount": _money(o.conditions.min_amount),
        "seasonal": o.seasonal,
        "priority": o.priority,
    }


def report_payload(r: ConflictReport) -> Dict[str, Any]:
    return {
        "isValid": r.is_valid,
        "conflicts": [c.as_dict() for c in r.conflicts],
        "warnings": list(r.warnings),
    }


def row_payload(r: PreviewRow) -> Dict[str, Any]:
    return {
        "productId": r.product_id,
        "name": r.name,
        "currentPrice": _money(r.current_price),
        "newPrice": _money(r.new_price),
        "priceChange": _money(r.price_change),
        "discountedPrice": _money(r.discounted_price),
        "hasDiscount": r.has_discount,
        "hasConflicts": r.has_conflicts,
        "conflictType": r.conflict_type,
        "committable": r.committable,
        "report": report_payload(r.report),
    }


def result_payload(r: UpdateResult) -> Dict[str, Any]:
    return {
        "productId": r.product_id,
        "status": r.status,
        "code": r.code,
        "error": r.error,
        "product": product_payload(r.product) if r.product else None,
    }


def classify_report(report: ConflictReport) -> str:
    if not report.is_valid:
        return "blocking"
    if report.warnings:
        return "warning"
    return "ok"


# ----------------------------
# Helpers
# ----------------------------
def _http_error(e: PricingError) -> HTTPException:
    status = 404 if isinstance(e, ProductNotFound) else 422
    return HTTPException(status_code=status, detail={"code": e.code, "message": e.message, "meta": e.meta})


def _log_obs(
    *,
    request: Request,
    endpoint: str,
    t0: float,
    result: str,
    event: str,
    **extra: Any,
) -> None:
    request_id = request.headers.get("X-Request-ID", "unknown")
    logger.bind(
        request_id=request_id,
        endpoint=endpoint,
        duration_ms=round((time.time() - t0) * 1000, 2),
        result=result,
        **extra,
    ).info(event)


async def _load(store: ProductRepository, product_id: int) -> Product:
    try:
        return await store.get_by_id(product_id)
    except ProductNotFound as e:
        raise _http_error(e)


def _context(payload: ResolveInputV1 | OffersInputV1) -> PricingContext:
    if payload.context is None:
        return PricingContext()
    return payload.context.to_domain()


def _available_offer(available: List[Offer], offer_id: str, quantity: int) -> Offer:
    offer = next((o for o in available if o.id == offer_id), None)
    if offer is None:
        raise PricingError(
            f"Offer '{offer_id}' is not available for this product and quantity",
            {"offerId": offer_id, "quantity": quantity},
            code="OfferNotApplicable",
        )
    return offer


def _strategy(payload: BulkUpdateInputV1) -> Optional[BulkStrategy]:
    s = payload.strategy
    if s is None:
        return None
    if s.kind == "range":
        return BulkStrategy.range(s.min_price, s.max_price)
    if s.value is None:
        raise InvalidAmount("Please enter a value for the price update", {"strategy": s.kind})
    if s.kind == "percentage":
        return BulkStrategy.percentage(s.value, min_price=s.min_price, max_price=s.max_price)
    return BulkStrategy.fixed(s.value, min_price=s.min_price, max_price=s.max_price)


def _category_discount(payload: BulkUpdateInputV1) -> Optional[CategoryDiscount]:
    d = payload.discount
    if d is None:
        return None
    pd = d.to_domain()
    return CategoryDiscount(pd.kind, pd.value, pd.start_date, pd.end_date, pd.priority)


async def _preview(
    payload: BulkUpdateInputV1,
    repricer: BulkRepricer,
    store: ProductRepository,
) -> List[PreviewRow]:
    products = await store.get_all()
    return repricer.preview(
        products,
        _strategy(payload),
        BulkFilters(category=payload.category, low_stock_threshold=payload.low_stock_threshold),
        discount=_category_discount(payload),
        policy=payload.policy,
        today=payload.evaluation_date or date.today(),
    )


def _summary_payload(rows: List[PreviewRow]) -> Dict[str, Any]:
    s = BulkRepricer.summarize(rows)
    return {
        "rows": s.rows,
        "committable": s.committable,
        "conflicts": s.conflicts,
        "invalid": s.invalid,
        "warnings": s.warnings,
        "totalChange": _money(s.total_change),
        "skippedIds": list(s.skipped_ids),
    }


# ----------------------------
# Products
# ----------------------------
@router.get("/products")
async def list_products(store: ProductRepository = Depends(get_store)) -> Dict[str, Any]:
    products = await store.get_all()
    return {"products": [product_payload(p) for p in products]}


@router.get("/products/{product_id}")
async def get_product(product_id: int, store: ProductRepository = Depends(get_store)) -> Dict[str, Any]:
    return product_payload(await _load(store, product_id))


# ----------------------------
# Resolve / offers
# ----------------------------
@router.post("/resolve", response_model=PricingOutputV1)
async def resolve(
    payload: ResolveInputV1,
    request: Request,
    store: ProductRepository = Depends(get_store),
    limits: PriceLimits = Depends(get_limits),
    stats: StatsCollector = Depends(get_stats),
) -> PricingOutputV1:
    t0 = time.time()
    product = await _load(store, payload.product_id)

    try:
        ctx = _context(payload)
        tier = PriceTierResolver(limits).resolve(product, ctx)
    except PricingError as e:
        stats.record("resolve", "error")
        _log_obs(request=request, endpoint="/api/pricing/resolve", t0=t0, result="error", event="pricing_resolve",
                 product_id=product.id, code=e.code)
        raise _http_error(e)

    metrics = profit_metrics(tier.final_price, product.purchase_price)
    body = tier_payload(tier)
    body.update(
        {
            "productId": product.id,
            "quantity": ctx.quantity,
            "lineTotal": _money(tier.line_total(ctx.quantity)),
            "dealSavings": _money(deal_savings(product.deal, tier.final_price, ctx.quantity)),
            "minSellingPrice": _money(metrics.min_selling_price),
            "profitMarginPct": _money(metrics.profit_margin_pct),
        }
    )

    stats.record("resolve", "ok")
    _log_obs(request=request, endpoint="/api/pricing/resolve", t0=t0, result="ok", event="pricing_resolve",
             product_id=product.id, tier=tier.applied_tier_name)
    return PricingOutputV1(status="ok", payload=body)


@router.post("/offers", response_model=PricingOutputV1)
async def offers(
    payload: OffersInputV1,
    request: Request,
    store: ProductRepository = Depends(get_store),
    limits: PriceLimits = Depends(get_limits),
    stats: StatsCollector = Depends(get_stats),
) -> PricingOutputV1:
    t0 = time.time()
    product = await _load(store, payload.product_id)

    try:
        ctx = _context(payload)
        tier = PriceTierResolver(limits).resolve(product, ctx)
        available = OfferCatalog.default().generate(product, ctx)

        if payload.offer_id is not None:
            selected = _available_offer(available, payload.offer_id, ctx.quantity)
        else:
            selected = OfferSelector.select_best(available)
        applied = [_available_offer(available, offer_id, ctx.quantity) for offer_id in payload.applied_offer_ids]

        summary = OfferSelector.summarize(selected, applied, tier.final_price, ctx.quantity)
    except PricingError as e:
        stats.record("offers", "error")
        _log_obs(request=request, endpoint="/api/pricing/offers", t0=t0, result="error", event="pricing_offers",
                 product_id=product.id, code=e.code)
        raise _http_error(e)

    ranked = OfferSelector.rank(available, tier.final_price, ctx.quantity)
    body = {
        "productId": product.id,
        "quantity": ctx.quantity,
        "unitPrice": _money(tier.final_price),
        "offers": [offer_payload(o) for o in available],
        "ranked": [o.id for o in ranked],
        "selectedOffer": summary.selected.id if summary.selected else None,
        "lineTotal": _money(summary.line_total),
        "discount": _money(summary.discount),
        "finalTotal": _money(summary.final_total),
        "displaySavings": _money(summary.display_savings),
        "dealSavings": _money(deal_savings(product.deal, tier.final_price, ctx.quantity)),
    }

    stats.record("offers", "ok")
    _log_obs(request=request, endpoint="/api/pricing/offers", t0=t0, result="ok", event="pricing_offers",
             product_id=product.id, offers=len(available), selected=body["selectedOffer"])
    return PricingOutputV1(status="ok", payload=body)


# ----------------------------
# Validate
# ----------------------------
@router.post("/validate", response_model=PricingOutputV1)
async def validate(
    payload: ValidateInputV1,
    request: Request,
    store: ProductRepository = Depends(get_store),
    limits: PriceLimits = Depends(get_limits),
    stats: StatsCollector = Depends(get_stats),
) -> PricingOutputV1:
    t0 = time.time()
    candidate = payload.product.to_domain()
    peers = await store.get_all()
    report = ConflictValidator(limits).validate(
        candidate,
        peers,
        payload.exclude_id,
        bulk=payload.bulk,
        today=payload.evaluation_date or date.today(),
    )
    status = classify_report(report)

    stats.record("validate", "valid" if report.is_valid else "invalid")
    _log_obs(request=request, endpoint="/api/pricing/validate", t0=t0, result=status, event="pricing_validate",
             product_id=candidate.id, conflicts=len(report.conflicts), warnings=len(report.warnings))
    return PricingOutputV1(status=status, payload=report_payload(report))


# ----------------------------
# Bulk
# ----------------------------
@router.post("/bulk/preview", response_model=PricingOutputV1)
async def bulk_preview(
    payload: BulkUpdateInputV1,
    request: Request,
    store: ProductRepository = Depends(get_store),
    limits: PriceLimits = Depends(get_limits),
    stats: StatsCollector = Depends(get_stats),
) -> PricingOutputV1:
    t0 = time.time()
    try:
        rows = await _preview(payload, BulkRepricer(store, limits, stats), store)
    except PricingError as e:
        raise _http_error(e)

    status = "ok" if all(r.committable for r in rows) else "warning"
    _log_obs(request=request, endpoint="/api/pricing/bulk/preview", t0=t0, result=status, event="pricing_bulk_preview",
             rows=len(rows))
    return PricingOutputV1(
        status=status,
        payload={"rows": [row_payload(r) for r in rows], "summary": _summary_payload(rows)},
    )


@router.post("/bulk/commit", response_model=PricingOutputV1)
async def bulk_commit(
    payload: BulkUpdateInputV1,
    request: Request,
    store: ProductRepository = Depends(get_store),
    limits: PriceLimits = Depends(get_limits),
    stats: StatsCollector = Depends(get_stats),
) -> PricingOutputV1:
    t0 = time.time()
    repricer = BulkRepricer(store, limits, stats)
    today = payload.evaluation_date or date.today()
    try:
        rows = await _preview(payload, repricer, store)
        results = await repricer.commit(rows, payload.policy, today=today)
    except PricingError as e:
        raise _http_error(e)

    status = "ok" if all(r.ok for r in results) else "warning"
    _log_obs(request=request, endpoint="/api/pricing/bulk/commit", t0=t0, result=status, event="pricing_bulk_commit",
             rows=len(results))
    return PricingOutputV1(
        status=status,
        payload={"results": [result_payload(r) for r in results], "summary": _summary_payload(rows)},
    )
