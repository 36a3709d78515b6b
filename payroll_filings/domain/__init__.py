"""Domain layer definitions."""

from .bulk import BulkProgress, BulkReport, BulkUnit, CancellationToken, SkipUnit, UnitResult

__all__ = [
    "BulkProgress",
    "BulkReport",
    "BulkUnit",
    "CancellationToken",
    "SkipUnit",
    "UnitResult",
]
