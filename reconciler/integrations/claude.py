# reconciler/integrations/claude.py

"""
Claude integration for semantic matching and exception classification.

Uses Anthropic's Claude API to:
1. Pair unmatched rows whose descriptions differ but mean the same thing
2. Explain why the remaining rows have no counterpart
"""

import json
import logging
from typing import Any, Optional

from anthropic import AsyncAnthropic, APIError
from pydantic import ValidationError

from reconciler.config import Settings, get_settings
from reconciler.integrations.base import (
    SemanticMatcher,
    SemanticServiceError,
    SemanticServiceUnavailable,
)
from reconciler.models import (
    EXCEPTION_CATEGORIES,
    ExceptionClassification,
    MatchPair,
)

logger = logging.getLogger(__name__)


MATCH_SYSTEM_PROMPT = """You are a bank reconciliation matching assistant. Match transactions
between two sources that represent the same underlying transaction.

- Amounts may differ by sign convention (bank vs general ledger).
- Dates may be several days apart because of posting delays.
- Descriptions will be worded differently: treat synonyms and abbreviations
  as equivalent (e.g. "AMZN MKTP" and "Amazon Marketplace").
- Reference numbers may carry different prefixes or padding
  (e.g. "CHK-001234" and "1234").

Respond with JSON only:
{"matches": [{"sourceAIdx": number, "sourceBIdx": number, "confidence": 0-100, "reasoning": string}]}
Only include matches where confidence >= 70. Each idx may appear at most once.
Be conservative - a false positive is worse than a missed match."""

CLASSIFY_SYSTEM_PROMPT = """You are a bank reconciliation assistant. Classify unmatched items from a
reconciliation between "{source_a}" (source A) and "{source_b}" (source B).

Categories: {categories}

Respond with JSON only:
{{"classifications": [{{"source": "A" | "B", "idx": number, "category": string, "reason": string}}]}}
Give a brief, specific reason for each item."""


class ClaudeSemanticMatcher(SemanticMatcher):
    """SemanticMatcher backed by the Anthropic Messages API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[Any] = None,
    ):
        self.settings = settings or get_settings()

        if client is None:
            if not self.settings.anthropic_api_key:
                raise SemanticServiceUnavailable("ANTHROPIC_API_KEY is not configured")
            client = AsyncAnthropic(api_key=self.settings.anthropic_api_key)

        self.client = client
        self.model = self.settings.anthropic_model

    async def batch_match(
        self,
        rows_a: list[dict],
        rows_b: list[dict],
        column_mapping_context: str,
    ) -> list[MatchPair]:
        prompt = (
            f"Column mapping between the sources:\n{column_mapping_context}\n\n"
            f"Source A (unmatched):\n{_dump(rows_a)}\n\n"
            f"Source B (unmatched):\n{_dump(rows_b)}"
        )
        parsed = await self._ask(MATCH_SYSTEM_PROMPT, prompt)

        entries = parsed.get("matches")
        if not isinstance(entries, list):
            raise SemanticServiceError("Response has no 'matches' list")

        matches = []
        for entry in entries:
            pair = _parse_match(entry)
            if pair is not None:
                matches.append(pair)
        return matches

    async def classify(
        self,
        items: list[dict],
        source_a_label: str,
        source_b_label: str,
    ) -> list[ExceptionClassification]:
        if not items:
            return []

        system = CLASSIFY_SYSTEM_PROMPT.format(
            source_a=source_a_label,
            source_b=source_b_label,
            categories=", ".join(EXCEPTION_CATEGORIES),
        )
        prompt = f"Classify these unmatched reconciliation items:\n{_dump(items)}"
        parsed = await self._ask(system, prompt)

        entries = parsed.get("classifications")
        if not isinstance(entries, list):
            raise SemanticServiceError("Response has no 'classifications' list")

        classifications = []
        for entry in entries:
            classification = _parse_classification(entry)
            if classification is not None:
                classifications.append(classification)
        return classifications

    async def _ask(self, system: str, prompt: str) -> dict:
        """Send one JSON-mode request and return the parsed object."""
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.settings.ai_max_tokens,
                temperature=0.2,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIError as e:
            raise SemanticServiceError(f"Claude API error: {e}") from e

        try:
            text = response.content[0].text
        except (AttributeError, IndexError, TypeError) as e:
            raise SemanticServiceError("Claude returned no text content") from e

        return parse_json_object(text)


def parse_json_object(text: str) -> dict:
    """
    Parse the JSON object in a model reply.

    Tolerates markdown code fences and prose around the object.
    """
    text = (text or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0]

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise SemanticServiceError("No JSON object in Claude response")

    try:
        parsed = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise SemanticServiceError(f"Malformed JSON from Claude: {e}") from e

    if not isinstance(parsed, dict):
        raise SemanticServiceError("Claude response is not a JSON object")
    return parsed


def _parse_match(entry: Any) -> Optional[MatchPair]:
    if not isinstance(entry, dict):
        return None
    try:
        return MatchPair(
            source_a_index=_as_index(entry["sourceAIdx"]),
            source_b_index=_as_index(entry["sourceBIdx"]),
            confidence=round(float(entry["confidence"])),
            method="fuzzy_ai",
            reasoning=entry.get("reasoning") or None,
        )
    except (KeyError, TypeError, ValueError, OverflowError, ValidationError):
        logger.debug(f"Skipping malformed match entry: {entry!r}")
        return None


def _parse_classification(entry: Any) -> Optional[ExceptionClassification]:
    if not isinstance(entry, dict):
        return None

    category = entry.get("category")
    if category not in EXCEPTION_CATEGORIES:
        category = "other"

    try:
        return ExceptionClassification(
            category=category,
            reason=str(entry.get("reason") or "Unmatched item"),
            source=entry["source"],
            row_index=_as_index(entry["idx"]),
        )
    except (KeyError, TypeError, ValueError, OverflowError, ValidationError):
        logger.debug(f"Skipping malformed classification entry: {entry!r}")
        return None


def _as_index(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("boolean is not a row index")
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"non-integral row index {value!r}")
    return int(number)


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=1, default=str)
