# reconciler/core/matching.py

"""
Core row matching engine.

Pairs rows from two sources in three passes:
1. Deterministic scoring + greedy global assignment
2. Optional AI fuzzy matching over the residual rows
3. Exception classification of whatever is still unmatched

then reports the net variance of the unmatched amounts.
"""

from datetime import datetime
from typing import Optional
import heapq
import logging

from reconciler.config import Settings, get_settings
from reconciler.integrations.base import SemanticMatcher
from reconciler.integrations.claude import ClaudeSemanticMatcher
from reconciler.models import (
    CandidateScore,
    MatchingResult,
    MatchingRules,
    MatchPair,
    ReconciliationSummary,
    SourceConfig,
)
from reconciler.core.confidence import (
    Tolerances,
    resolve_tolerances,
    score_candidate,
    score_to_confidence,
)
from reconciler.core.normalizers import (
    DEFAULT_NETTING_RULE,
    NettingRule,
    RowFields,
    extract_fields,
    get_amount_from_row,
)
from reconciler.core.ai_assist import run_fuzzy_matching
from reconciler.core.classification import classify_exceptions

logger = logging.getLogger(__name__)


async def run_matching(
    source_a_rows: list[dict],
    source_b_rows: list[dict],
    source_a_config: SourceConfig,
    source_b_config: SourceConfig,
    matching_rules: MatchingRules,
    semantic_matcher: Optional[SemanticMatcher] = None,
    netting_rule: NettingRule = DEFAULT_NETTING_RULE,
    settings: Optional[Settings] = None,
) -> MatchingResult:
    """
    Main reconciliation function.

    Without an explicit semantic_matcher the Claude matcher is built from
    settings; missing credentials raise SemanticServiceUnavailable here,
    before any matching is done.
    """
    start_time = datetime.now()
    settings = settings or get_settings()

    if semantic_matcher is None:
        semantic_matcher = ClaudeSemanticMatcher(settings=settings)

    # ============================================
    # Pass 1: Deterministic scoring and assignment
    # ============================================
    matched = match_deterministic(
        source_a_rows,
        source_b_rows,
        source_a_config,
        source_b_config,
        matching_rules,
        netting_rule=netting_rule,
        settings=settings,
    )

    unmatched_a, unmatched_b = _collect_unmatched(matched, len(source_a_rows), len(source_b_rows))

    # ============================================
    # Pass 2: AI fuzzy matching
    # ============================================
    if (
        matching_rules.fuzzy_description
        and settings.enable_ai_matching
        and unmatched_a
        and unmatched_b
    ):
        fuzzy = await run_fuzzy_matching(
            source_a_rows,
            source_b_rows,
            source_a_config,
            source_b_config,
            unmatched_a,
            unmatched_b,
            semantic_matcher,
            settings=settings,
        )
        if fuzzy:
            matched.extend(fuzzy)
            unmatched_a, unmatched_b = _collect_unmatched(
                matched, len(source_a_rows), len(source_b_rows)
            )

    # ============================================
    # Pass 3: Exception classification
    # ============================================
    exceptions = await classify_exceptions(
        source_a_rows,
        source_b_rows,
        source_a_config,
        source_b_config,
        unmatched_a,
        unmatched_b,
        semantic_matcher,
        settings=settings,
        netting_rule=netting_rule,
    )

    variance = calculate_variance(
        source_a_rows,
        source_b_rows,
        source_a_config,
        source_b_config,
        unmatched_a,
        unmatched_b,
        netting_rule=netting_rule,
    )

    result = MatchingResult(
        matched=matched,
        unmatched_a=unmatched_a,
        unmatched_b=unmatched_b,
        exceptions=exceptions,
        variance=variance,
    )
    result.summary = build_summary(
        result,
        len(source_a_rows),
        len(source_b_rows),
        duration_ms=int((datetime.now() - start_time).total_seconds() * 1000),
    )

    logger.info(
        f"Reconciled {source_a_config.label!r} vs {source_b_config.label!r}: "
        f"{len(matched)} matched, {len(unmatched_a)}/{len(unmatched_b)} unmatched, "
        f"variance {variance:,.2f}"
    )

    return result


def match_deterministic(
    source_a_rows: list[dict],
    source_b_rows: list[dict],
    source_a_config: SourceConfig,
    source_b_config: SourceConfig,
    matching_rules: MatchingRules,
    netting_rule: NettingRule = DEFAULT_NETTING_RULE,
    settings: Optional[Settings] = None,
) -> list[MatchPair]:
    """Score every pair and assign greedily. No external calls."""
    settings = settings or get_settings()

    if not source_a_config.has_column_type("amount") or not source_b_config.has_column_type("amount"):
        logger.warning(
            "No amount column configured for "
            f"{source_a_config.label!r} and/or {source_b_config.label!r}; "
            "no rows can be matched deterministically"
        )

    fields_a = [extract_fields(row, source_a_config.columns, netting_rule) for row in source_a_rows]
    fields_b = [extract_fields(row, source_b_config.columns, netting_rule) for row in source_b_rows]

    tolerances = resolve_tolerances(matching_rules, source_a_config, source_b_config)
    compare_references = (
        source_a_config.has_column_type("reference")
        and source_b_config.has_column_type("reference")
    )

    candidates = build_candidates(
        fields_a,
        fields_b,
        tolerances,
        compare_references,
        max_candidates=settings.max_candidates_per_row,
    )
    matched = resolve_assignments(candidates, min_score=settings.min_match_score)

    logger.info(
        f"Deterministic pass: {len(matched)} matches from "
        f"{len(source_a_rows)} x {len(source_b_rows)} rows"
    )
    return matched


def build_candidates(
    fields_a: list[RowFields],
    fields_b: list[RowFields],
    tolerances: Tolerances,
    compare_references: bool,
    max_candidates: int = 3,
) -> dict[int, list[CandidateScore]]:
    """
    Top candidates for each A-row, best first.

    A-rows without any gate-passing B-row are left out.
    """
    candidates: dict[int, list[CandidateScore]] = {}

    for a_idx, a in enumerate(fields_a):
        if a.amount is None:
            continue

        scored = []
        for b_idx, b in enumerate(fields_b):
            candidate = score_candidate(a, b, b_idx, tolerances, compare_references)
            if candidate is not None:
                scored.append(candidate)

        if scored:
            candidates[a_idx] = heapq.nlargest(
                max_candidates, scored, key=lambda c: c.total_score
            )

    return candidates


def resolve_assignments(
    candidates: dict[int, list[CandidateScore]],
    min_score: int = 55,
) -> list[MatchPair]:
    """
    Greedy one-to-one assignment.

    A-rows are visited by their best candidate's score, highest first; each
    takes its first still-free candidate that clears min_score. Greedy,
    not an optimal bipartite matching.
    """
    order = sorted(
        (a_idx for a_idx, scores in candidates.items() if scores),
        key=lambda a_idx: candidates[a_idx][0].total_score,
        reverse=True,
    )

    assigned_b: set[int] = set()
    matched: list[MatchPair] = []

    for a_idx in order:
        for candidate in candidates[a_idx]:
            if candidate.b_index in assigned_b:
                continue
            if candidate.total_score < min_score:
                continue

            matched.append(MatchPair(
                source_a_index=a_idx,
                source_b_index=candidate.b_index,
                confidence=score_to_confidence(candidate.total_score),
                method="exact",
                reasoning=_describe_candidate(candidate),
                sign_inverted=candidate.sign_inverted,
            ))
            assigned_b.add(candidate.b_index)
            break

    return matched


def _describe_candidate(candidate: CandidateScore) -> str:
    """Short human-readable breakdown of a deterministic match."""
    factors = [
        "Amount matches with inverted sign" if candidate.sign_inverted else "Amount matches",
    ]
    if candidate.date_score == 25:
        factors.append("same day")
    elif candidate.date_score == 10:
        factors.append("date unavailable")
    else:
        factors.append("date within window")
    if candidate.reference_score >= 30:
        factors.append("reference matches")
    elif candidate.reference_score > 0:
        factors.append("reference partially matches")
    elif candidate.reference_score < 0:
        factors.append("references differ")
    if candidate.text_score >= 6:
        factors.append("similar description")

    return f"{', '.join(factors)} (score {candidate.total_score})"


def _collect_unmatched(
    matched: list[MatchPair],
    count_a: int,
    count_b: int,
) -> tuple[list[int], list[int]]:
    used_a = {m.source_a_index for m in matched}
    used_b = {m.source_b_index for m in matched}
    return (
        [i for i in range(count_a) if i not in used_a],
        [i for i in range(count_b) if i not in used_b],
    )


def calculate_variance(
    source_a_rows: list[dict],
    source_b_rows: list[dict],
    source_a_config: SourceConfig,
    source_b_config: SourceConfig,
    unmatched_a: list[int],
    unmatched_b: list[int],
    netting_rule: NettingRule = DEFAULT_NETTING_RULE,
) -> float:
    """Unmatched A total minus unmatched B total, to the cent."""
    total_a = sum(
        get_amount_from_row(source_a_rows[idx], source_a_config.columns, netting_rule) or 0.0
        for idx in unmatched_a
    )
    total_b = sum(
        get_amount_from_row(source_b_rows[idx], source_b_config.columns, netting_rule) or 0.0
        for idx in unmatched_b
    )
    return round(total_a - total_b, 2)


def build_summary(
    result: MatchingResult,
    total_source_a: int,
    total_source_b: int,
    duration_ms: int = 0,
) -> ReconciliationSummary:
    exception_counts: dict[str, int] = {}
    for exception in result.exceptions:
        exception_counts[exception.category] = exception_counts.get(exception.category, 0) + 1

    matched_count = len(result.matched)

    return ReconciliationSummary(
        total_source_a=total_source_a,
        total_source_b=total_source_b,
        matched_count=matched_count,
        exact_matched=len([m for m in result.matched if m.method == "exact"]),
        fuzzy_matched=len([m for m in result.matched if m.method == "fuzzy_ai"]),
        unmatched_a_count=len(result.unmatched_a),
        unmatched_b_count=len(result.unmatched_b),
        match_rate=round(matched_count / total_source_a * 100) if total_source_a else 0,
        exception_counts=exception_counts,
        duration_ms=duration_ms,
    )
