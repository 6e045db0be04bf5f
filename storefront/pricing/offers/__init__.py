from .catalog import DateWindow, OfferCatalog, SeasonalWindow, generate_offers
from .selector import OfferSelector, OfferSummary, compute_discount, compute_final, select_offer

__all__ = [
    "DateWindow",
    "OfferCatalog",
    "OfferSelector",
    "OfferSummary",
    "SeasonalWindow",
    "compute_discount",
    "compute_final",
    "generate_offers",
    "select_offer",
]
