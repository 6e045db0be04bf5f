from .repricer import (
    BulkFilters,
    BulkRepricer,
    BulkStrategy,
    BulkSummary,
    CategoryDiscount,
    PreviewRow,
    UpdateResult,
    commit_bulk_update,
    preview_bulk_update,
)

__all__ = [
    "BulkFilters",
    "BulkRepricer",
    "BulkStrategy",
    "BulkSummary",
    "CategoryDiscount",
    "PreviewRow",
    "UpdateResult",
    "commit_bulk_update",
    "preview_bulk_update",
]
