from .breakdown_builder import (
    Breakdown,
    BreakdownBuilder,
    BreakdownEntry,
    BreakdownKind,
    CheckStatus,
)

__all__ = ["Breakdown", "BreakdownBuilder", "BreakdownEntry", "BreakdownKind", "CheckStatus"]
