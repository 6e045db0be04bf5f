"""
Pricing core: tier resolution, promotional offers, configuration
validation and bulk repricing. Everything here is synchronous and pure
except commit_bulk_update, which writes through a product store.
"""

from .bulk.repricer import (
    BulkFilters,
    BulkRepricer,
    BulkStrategy,
    CategoryDiscount,
    commit_bulk_update,
    preview_bulk_update,
)
from .domain.models import (
    ConflictPolicy,
    Deal,
    DiscountKind,
    Offer,
    PriceLimits,
    PricingContext,
    Product,
    ProductDiscount,
    SeasonalDiscount,
    TierResult,
)
from .engine.tier_resolver import PriceTierResolver, resolve_price
from .errors import ConflictType, PricingError
from .offers.catalog import OfferCatalog, generate_offers
from .offers.selector import OfferSelector, compute_discount, compute_final, select_offer
from .validation.conflicts import ConflictReport, ConflictValidator, validate_configuration

__all__ = [
    "BulkFilters",
    "BulkRepricer",
    "BulkStrategy",
    "CategoryDiscount",
    "ConflictPolicy",
    "ConflictReport",
    "ConflictType",
    "ConflictValidator",
    "Deal",
    "DiscountKind",
    "Offer",
    "OfferCatalog",
    "OfferSelector",
    "PriceLimits",
    "PriceTierResolver",
    "PricingContext",
    "PricingError",
    "Product",
    "ProductDiscount",
    "SeasonalDiscount",
    "TierResult",
    "commit_bulk_update",
    "compute_discount",
    "compute_final",
    "generate_offers",
    "preview_bulk_update",
    "resolve_price",
    "select_offer",
    "validate_configuration",
]
