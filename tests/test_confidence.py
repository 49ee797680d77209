# tests/test_confidence.py

"""
Tests for candidate scoring and tolerance resolution.
"""

import pytest
from datetime import date

from reconciler.models import ColumnDef, MatchingRules, SourceConfig
from reconciler.core.normalizers import RowFields
from reconciler.core.confidence import (
    Tolerances,
    resolve_tolerances,
    score_candidate,
    score_to_confidence,
)


# ============================================
# Test Data
# ============================================

JAN_1 = date(2024, 1, 1)


def make_fields(
    amount: float | None,
    txn_date: date | None = JAN_1,
    references: list[str] = None,
    description: str = "",
) -> RowFields:
    return RowFields(
        amount=amount,
        date=txn_date,
        references=references or [],
        description=description,
    )


def make_source(label: str, *specs: tuple[str, str]) -> SourceConfig:
    return SourceConfig(
        label=label,
        columns=[ColumnDef(key=key, label=key, type=col_type) for key, col_type in specs],
    )


STRICT = Tolerances(amount=0.0, date_window_days=0)
LOOSE = Tolerances(amount=1.0, date_window_days=10)


# ============================================
# Amount Gate
# ============================================

class TestAmountScoring:

    def test_exact_direct_match(self):
        score = score_candidate(make_fields(100), make_fields(100), 0, STRICT, False)

        assert score.amount_score == 50
        assert score.date_score == 25
        assert score.total_score == 75
        assert score.sign_inverted is False

    def test_exact_inverted_match(self):
        score = score_candidate(make_fields(-100), make_fields(100), 3, STRICT, False)

        assert score.b_index == 3
        assert score.amount_score == 45
        assert score.sign_inverted is True

    def test_within_tolerance(self):
        direct = score_candidate(make_fields(100), make_fields(100.5), 0, LOOSE, False)
        inverted = score_candidate(make_fields(-100), make_fields(100.5), 0, LOOSE, False)

        assert (direct.amount_score, direct.sign_inverted) == (40, False)
        assert (inverted.amount_score, inverted.sign_inverted) == (35, True)

    def test_outside_tolerance_rejected(self):
        assert score_candidate(make_fields(100), make_fields(102), 0, LOOSE, False) is None
        assert score_candidate(make_fields(100), make_fields(100.5), 0, STRICT, False) is None

    def test_missing_amount_rejected(self):
        assert score_candidate(make_fields(None), make_fields(100), 0, LOOSE, False) is None


# ============================================
# Date Gate
# ============================================

class TestDateScoring:

    @pytest.mark.parametrize("day, expected", [
        (1, 25),
        (2, 22),
        (4, 19),
        (6, 15),
        (11, 15),
    ])
    def test_date_proximity(self, day, expected):
        score = score_candidate(
            make_fields(100), make_fields(100, date(2024, 1, day)), 0, LOOSE, False
        )
        assert score.date_score == expected

    def test_outside_window_rejected(self):
        window = Tolerances(amount=0.0, date_window_days=2)
        score = score_candidate(make_fields(100), make_fields(100, date(2024, 1, 6)), 0, window, False)
        assert score is None

    def test_missing_date_is_neutral(self):
        score = score_candidate(make_fields(100, None), make_fields(100), 0, STRICT, False)
        assert score.date_score == 10
        assert score.total_score == 60


# ============================================
# Reference and Text
# ============================================

class TestReferenceAndTextScoring:

    def test_exact_reference(self):
        score = score_candidate(
            make_fields(100, references=["INV-7"]), make_fields(100, references=["INV-7"]),
            0, STRICT, True,
        )
        assert score.reference_score == 30
        assert score.total_score == 105

    def test_partial_reference(self):
        score = score_candidate(
            make_fields(100, references=["1234"]), make_fields(100, references=["CHK-001234"]),
            0, STRICT, True,
        )
        assert score.reference_score == 21

    def test_conflicting_references_penalised(self):
        score = score_candidate(
            make_fields(100, references=["INV-7"]), make_fields(100, references=["PO-99"]),
            0, STRICT, True,
        )
        assert score.reference_score == -5

    def test_one_side_without_reference_is_neutral(self):
        score = score_candidate(
            make_fields(100, references=["INV-7"]), make_fields(100), 0, STRICT, True,
        )
        assert score.reference_score == 0

    def test_references_ignored_unless_both_schemas_have_them(self):
        score = score_candidate(
            make_fields(100, references=["INV-7"]), make_fields(100, references=["PO-99"]),
            0, STRICT, False,
        )
        assert score.reference_score == 0

    @pytest.mark.parametrize("a, b, expected", [
        ("Office Depot", "office depot", 10),
        ("Payroll", "Payroll deposit", 6),
        ("Shell Oil Company Fuel Stop", "Shell gas", 3),
        ("Shell", "Whole Foods", 0),
    ])
    def test_text_tiebreaker(self, a, b, expected):
        score = score_candidate(
            make_fields(100, description=a), make_fields(100, description=b), 0, STRICT, False,
        )
        assert score.text_score == expected


# ============================================
# Tolerance Resolution
# ============================================

class TestToleranceResolution:

    source_a = make_source("Bank", ("posted", "date"), ("amt", "amount"))
    source_b = make_source("Ledger", ("gl_date", "date"), ("value", "amount"))

    def test_exact_mode_ignores_global_tolerance(self):
        rules = MatchingRules(amount_match="exact", amount_tolerance=5, date_window_days=3)
        tolerances = resolve_tolerances(rules, self.source_a, self.source_b)

        assert tolerances == Tolerances(amount=0.0, date_window_days=3)

    def test_tolerance_mode(self):
        rules = MatchingRules(amount_match="tolerance", amount_tolerance=2.5, date_window_days=1)
        assert resolve_tolerances(rules, self.source_a, self.source_b).amount == 2.5

    def test_column_overrides(self):
        rules = MatchingRules.model_validate({
            "amountMatch": "exact",
            "dateWindowDays": 1,
            "fuzzyDescription": False,
            "columnTolerances": {"amt": {"tolerance": 1.0}, "gl_date": {"tolerance": 7}},
        })
        tolerances = resolve_tolerances(rules, self.source_a, self.source_b)

        assert tolerances == Tolerances(amount=1.0, date_window_days=7)


# ============================================
# Confidence
# ============================================

class TestConfidence:

    @pytest.mark.parametrize("total, expected", [
        (75, 71),
        (70, 67),
        (105, 100),
        (140, 100),
        (-5, 0),
    ])
    def test_score_to_confidence(self, total, expected):
        assert score_to_confidence(total) == expected
