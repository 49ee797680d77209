# reconciler/models/match.py

from dataclasses import dataclass
from typing import Optional, Literal
from pydantic import BaseModel, Field


# ============================================
# Candidate Scoring
# ============================================

@dataclass
class CandidateScore:
    """
    Composite score of one (A-row, B-row) pair that passed the hard gates.
    """
    b_index: int
    total_score: int
    amount_score: int
    date_score: int
    reference_score: int
    text_score: int
    sign_inverted: bool = False


# ============================================
# Matches
# ============================================

MatchMethod = Literal["exact", "fuzzy_ai"]

class MatchPair(BaseModel):
    """A row from source A paired with a row from source B."""

    source_a_index: int = Field(ge=0)
    source_b_index: int = Field(ge=0)
    confidence: int = Field(ge=0, le=100, description="0-100 match confidence")
    method: MatchMethod
    reasoning: Optional[str] = None
    sign_inverted: bool = False


# ============================================
# Exception Classification
# ============================================

ExceptionCategory = Literal[
    "outstanding_check",
    "deposit_in_transit",
    "bank_fee",
    "interest",
    "timing_difference",
    "data_entry_error",
    "duplicate",
    "other",
]

EXCEPTION_CATEGORIES: tuple[str, ...] = (
    "outstanding_check",
    "deposit_in_transit",
    "bank_fee",
    "interest",
    "timing_difference",
    "data_entry_error",
    "duplicate",
    "other",
)

SourceSide = Literal["A", "B"]

class ExceptionClassification(BaseModel):
    """Best-guess explanation for why a row has no counterpart."""

    category: ExceptionCategory
    reason: str
    source: SourceSide
    row_index: int = Field(ge=0)


# ============================================
# Result
# ============================================

class ReconciliationSummary(BaseModel):
    """Headline figures of a reconciliation run."""

    total_source_a: int
    total_source_b: int
    matched_count: int
    exact_matched: int
    fuzzy_matched: int
    unmatched_a_count: int
    unmatched_b_count: int
    match_rate: int = Field(description="Matched pairs as a percentage of source A rows")
    exception_counts: dict[str, int] = Field(default_factory=dict)
    duration_ms: int = 0


class MatchingResult(BaseModel):
    """Everything a reconciliation run hands back to its caller."""

    matched: list[MatchPair] = Field(default_factory=list)
    unmatched_a: list[int] = Field(default_factory=list)
    unmatched_b: list[int] = Field(default_factory=list)
    exceptions: list[ExceptionClassification] = Field(default_factory=list)
    variance: float = 0.0
    summary: Optional[ReconciliationSummary] = None
