# reconciler/core/confidence.py

"""
Candidate scoring for row matching.

Scoring breakdown (max 105):
- Amount:     35-50 points (hard gate)
- Date:       10-25 points (hard gate when both dates parse)
- Reference:  -5-30 points (only when both sides have reference columns)
- Text:        0-10 points (tiebreaker)
"""

from dataclasses import dataclass
from typing import Optional

from reconciler.models import CandidateScore, MatchingRules, SourceConfig
from reconciler.core.normalizers import RowFields, days_between
from reconciler.core.similarity import match_references, text_similarity

MAX_SCORE = 105
EXACT_EPSILON = 0.01


@dataclass(frozen=True)
class Tolerances:
    """Effective amount tolerance and date window for one run."""
    amount: float
    date_window_days: int


def resolve_tolerances(
    rules: MatchingRules,
    source_a: SourceConfig,
    source_b: SourceConfig,
) -> Tolerances:
    """
    Resolve the effective tolerances.

    A per-column override on the A-side (then B-side) column of the right
    type wins over the global setting. Without an override, `exact` mode
    has zero amount tolerance.
    """
    amount_override = _column_override(rules, source_a, source_b, "amount")
    if amount_override is not None:
        amount = amount_override
    elif rules.amount_match == "exact":
        amount = 0.0
    else:
        amount = rules.amount_tolerance or 0.0

    date_override = _column_override(rules, source_a, source_b, "date")
    date_window = int(date_override) if date_override is not None else rules.date_window_days

    return Tolerances(amount=amount, date_window_days=date_window)


def _column_override(
    rules: MatchingRules,
    source_a: SourceConfig,
    source_b: SourceConfig,
    column_type: str,
) -> Optional[float]:
    if not rules.column_tolerances:
        return None

    for source in (source_a, source_b):
        for column in source.columns_of_type(column_type):
            override = rules.column_tolerances.get(column.key)
            if override is not None:
                return override.tolerance
    return None


def score_candidate(
    a: RowFields,
    b: RowFields,
    b_index: int,
    tolerances: Tolerances,
    compare_references: bool,
) -> Optional[CandidateScore]:
    """
    Score an (A-row, B-row) pair.

    Returns None when the pair fails the amount or date gate.
    """
    amount = _score_amount(a.amount, b.amount, tolerances.amount)
    if amount is None:
        return None
    amount_score, sign_inverted = amount

    date_score = _score_date(a, b, tolerances.date_window_days)
    if date_score is None:
        return None

    reference_score = _score_reference(a.references, b.references) if compare_references else 0
    text_score = _score_text(a.description, b.description)

    return CandidateScore(
        b_index=b_index,
        total_score=amount_score + date_score + reference_score + text_score,
        amount_score=amount_score,
        date_score=date_score,
        reference_score=reference_score,
        text_score=text_score,
        sign_inverted=sign_inverted,
    )


def _score_amount(
    amount_a: Optional[float],
    amount_b: Optional[float],
    tolerance: float,
) -> Optional[tuple[int, bool]]:
    """Amount gate and score. Returns (score, sign_inverted) or None."""
    if amount_a is None or amount_b is None:
        return None

    direct = abs(amount_a - amount_b)
    inverted = abs(amount_a + amount_b)

    if direct < EXACT_EPSILON:
        return 50, False
    if inverted < EXACT_EPSILON:
        return 45, True
    if direct <= tolerance:
        return 40, False
    if inverted <= tolerance:
        return 35, True
    return None


def _score_date(a: RowFields, b: RowFields, window_days: int) -> Optional[int]:
    """Date gate and score. A missing date on either side is neutral."""
    if a.date is None or b.date is None:
        return 10

    days = days_between(a.date, b.date)
    if days > window_days:
        return None

    if days == 0:
        return 25
    elif days == 1:
        return 22
    return max(15, 25 - 2 * days)


def _score_reference(refs_a: list[str], refs_b: list[str]) -> int:
    if not refs_a or not refs_b:
        return 0

    match = match_references(refs_a, refs_b)
    if match.type == "exact":
        return 30
    elif match.type == "partial":
        return round(match.score * 30)
    # both sides carry references and none agree
    return -5


def _score_text(description_a: str, description_b: str) -> int:
    similarity = text_similarity(description_a, description_b)

    if similarity >= 0.8:
        return 10
    elif similarity >= 0.5:
        return 6
    elif similarity >= 0.2:
        return 3
    return 0


def score_to_confidence(total_score: int) -> int:
    """Map a composite score onto 0-100."""
    return max(0, round(min(100, total_score / MAX_SCORE * 100)))
