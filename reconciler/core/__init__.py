# reconciler/core/__init__.py

from reconciler.core.matching import (
    run_matching,
    match_deterministic,
    calculate_variance,
)
from reconciler.core.confidence import score_candidate, score_to_confidence
from reconciler.core.classification import classify_exceptions
from reconciler.core.ai_assist import run_fuzzy_matching
from reconciler.core.similarity import text_similarity, match_references
from reconciler.core.normalizers import (
    parse_amount,
    parse_date,
    get_amount_from_row,
    get_description_from_row,
    get_reference_from_row,
    NettingRule,
)

__all__ = [
    "run_matching",
    "match_deterministic",
    "calculate_variance",
    "score_candidate",
    "score_to_confidence",
    "classify_exceptions",
    "run_fuzzy_matching",
    "text_similarity",
    "match_references",
    "parse_amount",
    "parse_date",
    "get_amount_from_row",
    "get_description_from_row",
    "get_reference_from_row",
    "NettingRule",
]
