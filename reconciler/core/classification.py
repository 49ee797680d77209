# reconciler/core/classification.py

"""
Exception classification for unmatched rows.

Every row left unmatched at the end of a run gets exactly one
classification. The semantic matcher proposes categories for a sample; rows
it skips are backfilled, and if it fails outright every row falls back to
"other".
"""

import asyncio
import logging
from typing import Optional

from reconciler.config import Settings, get_settings
from reconciler.integrations.base import SemanticMatcher
from reconciler.models import ExceptionClassification, SourceConfig, SourceSide
from reconciler.core.normalizers import (
    DEFAULT_NETTING_RULE,
    NettingRule,
    get_amount_from_row,
    get_description_from_row,
    get_raw_date_from_row,
    parse_date,
)

logger = logging.getLogger(__name__)

FALLBACK_REASON = "Unmatched item"
UNCLASSIFIED_REASON = "Unclassified"


def build_classification_items(
    rows: list[dict],
    source: SourceConfig,
    indices: list[int],
    side: SourceSide,
    netting_rule: NettingRule = DEFAULT_NETTING_RULE,
) -> list[dict]:
    """Amount, date and description of each row - never the full row."""
    items = []
    for idx in indices:
        row = rows[idx]
        raw_date = get_raw_date_from_row(row, source.columns)
        parsed_date = parse_date(raw_date)
        items.append({
            "source": side,
            "idx": idx,
            "amount": get_amount_from_row(row, source.columns, netting_rule),
            "date": parsed_date.isoformat() if parsed_date else raw_date,
            "description": get_description_from_row(row, source.columns),
        })
    return items


def fallback_classifications(
    unmatched_a: list[int],
    unmatched_b: list[int],
    reason: str = FALLBACK_REASON,
) -> list[ExceptionClassification]:
    """Classify every residual row as "other"."""
    return [
        ExceptionClassification(category="other", reason=reason, source="A", row_index=idx)
        for idx in unmatched_a
    ] + [
        ExceptionClassification(category="other", reason=reason, source="B", row_index=idx)
        for idx in unmatched_b
    ]


async def classify_exceptions(
    rows_a: list[dict],
    rows_b: list[dict],
    source_a: SourceConfig,
    source_b: SourceConfig,
    unmatched_a: list[int],
    unmatched_b: list[int],
    matcher: SemanticMatcher,
    settings: Optional[Settings] = None,
    netting_rule: NettingRule = DEFAULT_NETTING_RULE,
) -> list[ExceptionClassification]:
    """
    Classify every unmatched row.

    Returns one entry per unmatched index, A side first, in index order.
    """
    if not unmatched_a and not unmatched_b:
        return []

    settings = settings or get_settings()
    sample = settings.classification_sample_size

    items = (
        build_classification_items(rows_a, source_a, unmatched_a[:sample], "A", netting_rule)
        + build_classification_items(rows_b, source_b, unmatched_b[:sample], "B", netting_rule)
    )

    try:
        returned = await asyncio.wait_for(
            matcher.classify(items, source_a.label, source_b.label),
            timeout=settings.ai_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning(
            f"Exception classification timed out after {settings.ai_timeout_seconds}s; "
            f"labelling {len(unmatched_a) + len(unmatched_b)} rows as other"
        )
        return fallback_classifications(unmatched_a, unmatched_b)
    except Exception as e:
        logger.warning(f"Exception classification failed: {e}")
        return fallback_classifications(unmatched_a, unmatched_b)

    wanted = {("A", idx) for idx in unmatched_a} | {("B", idx) for idx in unmatched_b}
    by_row: dict[tuple[str, int], ExceptionClassification] = {}
    for classification in returned or []:
        if not isinstance(classification, ExceptionClassification):
            continue
        key = (classification.source, classification.row_index)
        if key in wanted and key not in by_row:
            by_row[key] = classification

    result = []
    for side, indices in (("A", unmatched_a), ("B", unmatched_b)):
        for idx in indices:
            result.append(by_row.get((side, idx)) or ExceptionClassification(
                category="other",
                reason=UNCLASSIFIED_REASON,
                source=side,
                row_index=idx,
            ))

    backfilled = len(result) - len(by_row)
    if backfilled:
        logger.info(f"{backfilled} unmatched rows left unclassified by the model")

    return result
