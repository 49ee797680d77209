# reconciler/core/similarity.py

"""
Description and reference comparison.

Text similarity is token based and tolerant of bank-style abbreviations
("AMZN MKTP" vs "Amazon Marketplace"). Reference matching tries exact,
case-insensitive, containment and digit-core comparisons in that order.
"""

from dataclasses import dataclass
from typing import Literal
import re


MIN_PREFIX_LENGTH = 3
MIN_REFERENCE_LENGTH = 3


# ============================================
# Text similarity
# ============================================

def tokenize(text: str | None) -> list[str]:
    """
    Lowercase, strip non-alphanumerics, split on whitespace and drop
    single-character tokens.
    """
    if not text:
        return []

    text = text.lower()
    text = re.sub(r"[^a-z0-9\s]", "", text)
    return [token for token in text.split() if len(token) > 1]


def text_similarity(a: str | None, b: str | None) -> float:
    """
    Similarity between two descriptions, 0.0 to 1.0.

    (exact token overlap + 0.5 * prefix overlap) / max(token counts).
    A prefix overlap is a pair of leftover tokens where the shorter one
    (at least 3 characters) starts the longer one.
    """
    tokens_a = set(tokenize(a))
    tokens_b = set(tokenize(b))
    if not tokens_a or not tokens_b:
        return 0.0

    exact = tokens_a & tokens_b
    leftover_b = sorted(tokens_b - exact)

    prefix = 0
    for token_a in sorted(tokens_a - exact):
        for token_b in leftover_b:
            if _is_abbreviation(token_a, token_b):
                prefix += 1
                leftover_b.remove(token_b)
                break

    score = (len(exact) + 0.5 * prefix) / max(len(tokens_a), len(tokens_b))
    return min(1.0, score)


def _is_abbreviation(a: str, b: str) -> bool:
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if len(shorter) < MIN_PREFIX_LENGTH or shorter == longer:
        return False
    return longer.startswith(shorter)


# ============================================
# Reference matching
# ============================================

ReferenceMatchType = Literal["exact", "partial", "none"]


@dataclass(frozen=True)
class ReferenceMatch:
    type: ReferenceMatchType
    score: float


NO_REFERENCE_MATCH = ReferenceMatch("none", 0.0)


def match_references(refs_a: list[str], refs_b: list[str]) -> ReferenceMatch:
    """
    Compare two reference lists, strongest rule first.

    1. exact, case-sensitive      -> exact, 1.0
    2. exact, case-insensitive    -> exact, 0.95
    3. one contains the other     -> partial, 0.7
    4. same digit-only core       -> partial, 0.6
    """
    if not refs_a or not refs_b:
        return NO_REFERENCE_MATCH

    if set(refs_a) & set(refs_b):
        return ReferenceMatch("exact", 1.0)

    lower_a = [r.lower() for r in refs_a]
    lower_b = [r.lower() for r in refs_b]

    if set(lower_a) & set(lower_b):
        return ReferenceMatch("exact", 0.95)

    for ref_a in lower_a:
        for ref_b in lower_b:
            shorter, longer = (ref_a, ref_b) if len(ref_a) <= len(ref_b) else (ref_b, ref_a)
            if len(shorter) >= MIN_REFERENCE_LENGTH and shorter in longer:
                return ReferenceMatch("partial", 0.7)

    cores_a = {_digit_core(r) for r in refs_a}
    cores_b = {_digit_core(r) for r in refs_b}
    shared = {core for core in cores_a & cores_b if len(core) >= MIN_REFERENCE_LENGTH}
    if shared:
        return ReferenceMatch("partial", 0.6)

    return NO_REFERENCE_MATCH


def _digit_core(reference: str) -> str:
    return re.sub(r"\D", "", reference)
