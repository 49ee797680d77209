# reconciler/core/ai_assist.py

"""
AI-assisted fuzzy matching.

Second pass over the rows the deterministic scorer could not pair. Rows are
sent in bounded batches to the semantic matcher; anything it proposes below
the confidence threshold, outside the batch, or on an already claimed row
is dropped. A timeout or failure ends the pass without failing the run.
"""

import asyncio
import logging
from typing import Optional

from reconciler.config import Settings, get_settings
from reconciler.integrations.base import SemanticMatcher
from reconciler.models import MatchPair, SourceConfig

logger = logging.getLogger(__name__)


def build_column_mapping_context(source_a: SourceConfig, source_b: SourceConfig) -> str:
    """
    Describe which A-column corresponds to which B-column.

    Columns are paired by type, in schema order.
    """
    lines = []
    for column_type in ("date", "amount", "reference", "text"):
        cols_a = source_a.columns_of_type(column_type)
        cols_b = source_b.columns_of_type(column_type)
        for i in range(max(len(cols_a), len(cols_b))):
            left = _describe_column(cols_a[i]) if i < len(cols_a) else "(no counterpart)"
            right = _describe_column(cols_b[i]) if i < len(cols_b) else "(no counterpart)"
            lines.append(f"- {left} <-> {right} [{column_type}]")

    header = f'Source A = "{source_a.label}", Source B = "{source_b.label}"'
    return "\n".join([header] + lines)


def _describe_column(column) -> str:
    if column.label and column.label != column.key:
        return f'"{column.label}" ({column.key})'
    return f'"{column.key}"'


async def run_fuzzy_matching(
    rows_a: list[dict],
    rows_b: list[dict],
    source_a: SourceConfig,
    source_b: SourceConfig,
    unmatched_a: list[int],
    unmatched_b: list[int],
    matcher: SemanticMatcher,
    settings: Optional[Settings] = None,
) -> list[MatchPair]:
    """
    Ask the semantic matcher to pair residual rows.

    Batch k sends the k-th window of residual rows from each side. Stops
    after the configured number of batches, on an empty window, or when a
    batch yields nothing. A timeout or failure in any batch abandons the
    whole pass, so nothing proposed by earlier batches is returned either.

    Windows are paired by position only: a residual A-row in window k is
    shown the B-rows of window k and no other, and the pass ends as soon
    as either side runs out of windows.
    """
    settings = settings or get_settings()
    size = settings.fuzzy_batch_size
    context = build_column_mapping_context(source_a, source_b)

    accepted: list[MatchPair] = []
    claimed_a: set[int] = set()
    claimed_b: set[int] = set()

    for batch_number in range(settings.fuzzy_max_batches):
        start = batch_number * size
        batch_a = unmatched_a[start:start + size]
        batch_b = unmatched_b[start:start + size]
        if not batch_a or not batch_b:
            break

        payload_a = [{"idx": idx, "row": rows_a[idx]} for idx in batch_a]
        payload_b = [{"idx": idx, "row": rows_b[idx]} for idx in batch_b]

        try:
            proposals = await asyncio.wait_for(
                matcher.batch_match(payload_a, payload_b, context),
                timeout=settings.ai_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Fuzzy matching timed out after {settings.ai_timeout_seconds}s "
                f"(batch {batch_number + 1}); continuing with deterministic results"
            )
            return []
        except Exception as e:
            logger.warning(
                f"Fuzzy matching failed (batch {batch_number + 1}): {e}; "
                "continuing with deterministic results"
            )
            return []

        in_batch_a = set(batch_a)
        in_batch_b = set(batch_b)
        new_matches = 0

        for proposal in proposals or []:
            if not isinstance(proposal, MatchPair):
                continue
            a_idx = proposal.source_a_index
            b_idx = proposal.source_b_index

            if proposal.confidence < settings.fuzzy_min_confidence:
                continue
            if a_idx not in in_batch_a or b_idx not in in_batch_b:
                continue
            if a_idx in claimed_a or b_idx in claimed_b:
                continue

            accepted.append(proposal.model_copy(update={"method": "fuzzy_ai"}))
            claimed_a.add(a_idx)
            claimed_b.add(b_idx)
            new_matches += 1

        logger.info(
            f"Fuzzy batch {batch_number + 1}: {len(batch_a)} x {len(batch_b)} rows, "
            f"{new_matches} matches accepted"
        )

        if new_matches == 0:
            break

    return accepted
