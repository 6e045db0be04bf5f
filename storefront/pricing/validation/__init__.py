from .conflicts import (
    CategoryDiscountResolution,
    Conflict,
    ConflictReport,
    ConflictValidator,
    resolve_category_discount,
    validate_configuration,
)

__all__ = [
    "CategoryDiscountResolution",
    "Conflict",
    "ConflictReport",
    "ConflictValidator",
    "resolve_category_discount",
    "validate_configuration",
]
