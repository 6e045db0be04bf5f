from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ConflictType(str, Enum):
    """Error taxonomy shared by raised errors and ConflictReport entries."""

    INVALID_AMOUNT = "InvalidAmount"
    INVALID_PRODUCT = "InvalidProduct"
    MARGIN_VIOLATION = "MarginViolation"
    BOUNDS_VIOLATION = "BoundsViolation"
    DISCOUNT_CONFLICT = "DiscountConflict"
    CONFIGURATION_CONFLICT = "ConfigurationConflict"


class PricingError(Exception):
    """
    Raised by the fail-fast parts of the core (money, resolver, catalog load).
    Same shape as a blocking rule result: code + message + meta.
    """

    code: str = "PRICING_ERROR"

    def __init__(self, message: str, meta: Optional[Dict[str, Any]] = None, *, code: Optional[str] = None):
        if code is not None:
            self.code = str(code)
        self.message = str(message)
        self.meta = meta or {}
        super().__init__(f"{self.code}: {self.message}")


class InvalidAmount(PricingError, ValueError):
    code = ConflictType.INVALID_AMOUNT.value


class InvalidProduct(PricingError, ValueError):
    code = ConflictType.INVALID_PRODUCT.value


class ConfigurationError(PricingError, ValueError):
    code = ConflictType.CONFIGURATION_CONFLICT.value


class ProductNotFound(PricingError, KeyError):
    code = "ProductNotFound"

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return f"{self.code}: {self.message}"
