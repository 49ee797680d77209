# reconciler/models/__init__.py

from reconciler.models.source import (
    ColumnDef,
    ColumnType,
    SourceConfig,
    ColumnTolerance,
    MatchingRules,
    AmountMatchMode,
)
from reconciler.models.match import (
    CandidateScore,
    MatchPair,
    MatchMethod,
    ExceptionCategory,
    ExceptionClassification,
    EXCEPTION_CATEGORIES,
    SourceSide,
    ReconciliationSummary,
    MatchingResult,
)

__all__ = [
    # Source
    "ColumnDef",
    "ColumnType",
    "SourceConfig",
    "ColumnTolerance",
    "MatchingRules",
    "AmountMatchMode",
    # Match
    "CandidateScore",
    "MatchPair",
    "MatchMethod",
    "ExceptionCategory",
    "ExceptionClassification",
    "EXCEPTION_CATEGORIES",
    "SourceSide",
    "ReconciliationSummary",
    "MatchingResult",
]
