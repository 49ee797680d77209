# tests/test_ai_assist.py

"""
Tests for the batched AI fuzzy matching pass.
"""

import asyncio

from reconciler.config import Settings
from reconciler.integrations.base import SemanticMatcher
from reconciler.models import ColumnDef, MatchPair, SourceConfig
from reconciler.core.ai_assist import build_column_mapping_context, run_fuzzy_matching


TEST_SETTINGS = Settings(anthropic_api_key=None, ai_timeout_seconds=1.0)

SOURCE_A = SourceConfig(label="Chase", columns=[
    ColumnDef(key="posted", label="Posted", type="date"),
    ColumnDef(key="amount", label="Amount", type="amount"),
    ColumnDef(key="memo", label="Memo", type="text"),
])
SOURCE_B = SourceConfig(label="General Ledger", columns=[
    ColumnDef(key="gl_date", label="GL Date", type="date"),
    ColumnDef(key="debit", label="Debit", type="amount"),
    ColumnDef(key="credit", label="Credit", type="amount"),
])


class FirstRowMatcher(SemanticMatcher):
    """Pairs the first row of each side of every batch."""

    def __init__(self, confidence: int = 90):
        self.confidence = confidence
        self.calls: list[tuple[list[dict], list[dict]]] = []

    async def batch_match(self, rows_a, rows_b, column_mapping_context):
        self.calls.append((rows_a, rows_b))
        return [MatchPair(
            source_a_index=rows_a[0]["idx"],
            source_b_index=rows_b[0]["idx"],
            confidence=self.confidence,
            method="fuzzy_ai",
        )]

    async def classify(self, items, source_a_label, source_b_label):
        return []


class FixedMatcher(SemanticMatcher):

    def __init__(self, proposals, delay: float = 0):
        self.proposals = proposals
        self.delay = delay
        self.calls = 0

    async def batch_match(self, rows_a, rows_b, column_mapping_context):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.proposals)

    async def classify(self, items, source_a_label, source_b_label):
        return []


def make_rows(count: int) -> list[dict]:
    return [{"amount": i, "memo": f"row {i}"} for i in range(count)]


def fuzzy(matcher, unmatched_a, unmatched_b, settings=TEST_SETTINGS, rows=100):
    return asyncio.run(run_fuzzy_matching(
        make_rows(rows),
        make_rows(rows),
        SOURCE_A,
        SOURCE_B,
        unmatched_a,
        unmatched_b,
        matcher,
        settings=settings,
    ))


# ============================================
# Batching
# ============================================

class TestBatching:

    def test_windows_over_residual_lists(self):
        matcher = FirstRowMatcher()
        unmatched = list(range(70))

        accepted = fuzzy(matcher, unmatched, unmatched)

        assert len(matcher.calls) == 3
        assert [len(rows_a) for rows_a, _ in matcher.calls] == [30, 30, 10]
        assert [row["idx"] for row in matcher.calls[1][1]] == list(range(30, 60))
        assert [(m.source_a_index, m.source_b_index) for m in accepted] == [(0, 0), (30, 30), (60, 60)]
        assert all(m.method == "fuzzy_ai" for m in accepted)

    def test_batch_payload_carries_original_index(self):
        matcher = FirstRowMatcher()

        fuzzy(matcher, [7, 9], [3])

        rows_a, rows_b = matcher.calls[0]
        assert rows_a == [{"idx": 7, "row": {"amount": 7, "memo": "row 7"}},
                          {"idx": 9, "row": {"amount": 9, "memo": "row 9"}}]
        assert rows_b == [{"idx": 3, "row": {"amount": 3, "memo": "row 3"}}]

    def test_stops_when_a_batch_yields_nothing(self):
        matcher = FirstRowMatcher(confidence=50)

        accepted = fuzzy(matcher, list(range(70)), list(range(70)))

        assert accepted == []
        assert len(matcher.calls) == 1

    def test_stops_on_empty_window(self):
        matcher = FirstRowMatcher()

        accepted = fuzzy(matcher, list(range(40)), list(range(10)))

        assert len(matcher.calls) == 1
        assert len(accepted) == 1

    def test_max_batches_setting(self):
        matcher = FirstRowMatcher()
        settings = Settings(anthropic_api_key=None, fuzzy_batch_size=5, fuzzy_max_batches=2)

        fuzzy(matcher, list(range(20)), list(range(20)), settings=settings)

        assert len(matcher.calls) == 2


# ============================================
# Proposal Filtering
# ============================================

class TestProposalFiltering:

    def test_rejects_out_of_batch_and_duplicate_claims(self):
        matcher = FixedMatcher([
            MatchPair(source_a_index=1, source_b_index=2, confidence=95, method="fuzzy_ai"),
            MatchPair(source_a_index=1, source_b_index=4, confidence=90, method="fuzzy_ai"),
            MatchPair(source_a_index=3, source_b_index=2, confidence=90, method="fuzzy_ai"),
            MatchPair(source_a_index=50, source_b_index=4, confidence=99, method="fuzzy_ai"),
            MatchPair(source_a_index=3, source_b_index=99, confidence=99, method="fuzzy_ai"),
            MatchPair(source_a_index=3, source_b_index=4, confidence=69, method="fuzzy_ai"),
        ])

        accepted = fuzzy(matcher, [1, 3], [2, 4])

        assert [(m.source_a_index, m.source_b_index) for m in accepted] == [(1, 2)]

    def test_method_forced_to_fuzzy(self):
        matcher = FixedMatcher([
            MatchPair(source_a_index=0, source_b_index=0, confidence=80, method="exact"),
        ])

        accepted = fuzzy(matcher, [0], [0])

        assert accepted[0].method == "fuzzy_ai"

    def test_ignores_non_match_objects(self):
        matcher = FixedMatcher([{"sourceAIdx": 0, "sourceBIdx": 0, "confidence": 99}])

        assert fuzzy(matcher, [0], [0]) == []


# ============================================
# Failure Handling
# ============================================

class TestFailureHandling:

    def test_timeout_ends_pass(self):
        matcher = FixedMatcher(
            [MatchPair(source_a_index=0, source_b_index=0, confidence=99, method="fuzzy_ai")],
            delay=1.0,
        )
        settings = Settings(anthropic_api_key=None, ai_timeout_seconds=0.01)

        assert fuzzy(matcher, [0], [0], settings=settings) == []
        assert matcher.calls == 1

    def test_later_failure_discards_earlier_matches(self):
        class FlakyMatcher(FirstRowMatcher):
            async def batch_match(self, rows_a, rows_b, column_mapping_context):
                if self.calls:
                    raise RuntimeError("connection reset")
                return await super().batch_match(rows_a, rows_b, column_mapping_context)

        matcher = FlakyMatcher()

        accepted = fuzzy(matcher, list(range(70)), list(range(70)))

        assert accepted == []
        assert len(matcher.calls) == 1

    def test_later_timeout_discards_earlier_matches(self):
        class SlowSecondBatch(FirstRowMatcher):
            async def batch_match(self, rows_a, rows_b, column_mapping_context):
                if self.calls:
                    await asyncio.sleep(1.0)
                return await super().batch_match(rows_a, rows_b, column_mapping_context)

        matcher = SlowSecondBatch()
        settings = Settings(anthropic_api_key=None, fuzzy_batch_size=1, ai_timeout_seconds=0.05)

        assert fuzzy(matcher, [0, 1], [0, 1], settings=settings) == []


# ============================================
# Column Mapping Context
# ============================================

class TestColumnMappingContext:

    def test_pairs_columns_by_type(self):
        context = build_column_mapping_context(SOURCE_A, SOURCE_B)

        assert context.splitlines()[0] == 'Source A = "Chase", Source B = "General Ledger"'
        assert '- "Posted" (posted) <-> "GL Date" (gl_date) [date]' in context
        assert '- "Amount" (amount) <-> "Debit" (debit) [amount]' in context
        assert '- (no counterpart) <-> "Credit" (credit) [amount]' in context
        assert '- "Memo" (memo) <-> (no counterpart) [text]' in context
