# reconciler/integrations/base.py

"""
Interface to the external reasoning service.

The matching core only talks to a SemanticMatcher, so it can be driven by
a deterministic stub in tests and by Claude in production.
"""

from abc import ABC, abstractmethod

from reconciler.models import ExceptionClassification, MatchPair


class SemanticServiceError(Exception):
    """The reasoning service failed or answered with something unusable."""


class SemanticServiceUnavailable(SemanticServiceError):
    """The reasoning service cannot be used at all (e.g. no credentials)."""


class SemanticMatcher(ABC):
    """Model-assisted matching and exception classification."""

    @abstractmethod
    async def batch_match(
        self,
        rows_a: list[dict],
        rows_b: list[dict],
        column_mapping_context: str,
    ) -> list[MatchPair]:
        """
        Propose pairs between two batches of unmatched rows.

        Each batch item is {"idx": <row index>, "row": <full row data>}.
        Confidence thresholding is left to the caller.
        """

    @abstractmethod
    async def classify(
        self,
        items: list[dict],
        source_a_label: str,
        source_b_label: str,
    ) -> list[ExceptionClassification]:
        """
        Label unmatched rows.

        Each item is {"source": "A"|"B", "idx", "amount", "date", "description"}.
        """
