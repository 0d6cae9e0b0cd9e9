"""Duplicate-transaction detection by weighted multi-field similarity.

A candidate (not yet recorded) transaction is compared with each record of a
caller-supplied pool. The pairwise score is a weighted sum over four fields,
normalized by the total weight:

=========== ====== ==========================================================
field       weight rule
=========== ====== ==========================================================
kind        0.2    equal kinds earn the full weight
amount      0.3    ``|a-b| < 0.01`` earns the full weight; otherwise a relative
                   difference ``|a-b| / avg(a, b) < 0.2`` earns
                   ``weight * (1 - relative difference)``
description 0.3    ``0.7 * jaccard + 0.3 * positional`` over word tokens
category    0.2    candidate category (explicit, else inferred) equals the
                   record's category
=========== ====== ==========================================================

Records scoring strictly above the threshold (default 0.5) are returned in
descending order together with a suggestion level. The detector is pure: it
never reads storage; restricting the pool to a time window is the caller's job.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .classifier import TextClassifier
from .models import (
    DuplicateCheckResult,
    SimilarityCandidate,
    SuggestionLevel,
    TransactionKind,
    TransactionRecord,
)

KIND_WEIGHT = 0.2
AMOUNT_WEIGHT = 0.3
DESCRIPTION_WEIGHT = 0.3
CATEGORY_WEIGHT = 0.2
# fsum keeps the normalizer at exactly 1.0
_TOTAL_WEIGHT = math.fsum((KIND_WEIGHT, AMOUNT_WEIGHT, DESCRIPTION_WEIGHT, CATEGORY_WEIGHT))

_AMOUNT_TOLERANCE = 0.01
_MAX_RELATIVE_AMOUNT_DIFF = 0.2
_JACCARD_SHARE = 0.7
_SEQUENCE_SHARE = 0.3

DEFAULT_THRESHOLD = 0.5
_STRONG_AT = 0.8
_MODERATE_AT = 0.6

# Anything that is not a CJK ideograph or an ASCII letter/digit separates tokens
_NON_TOKEN_RE = re.compile(r"[^一-龥a-zA-Z0-9]")


@dataclass(frozen=True, slots=True)
class DuplicateCandidate:
    """The not-yet-recorded transaction a pool is checked against."""

    kind: TransactionKind
    amount: float
    description: str
    category: str | None = None


def tokenize(text: str) -> list[str]:
    return _NON_TOKEN_RE.sub(" ", text.lower()).split()


def _sequence_similarity(words1: Sequence[str], words2: Sequence[str]) -> float:
    max_len = max(len(words1), len(words2))
    if max_len == 0:
        return 1.0
    matches = sum(1 for a, b in zip(words1, words2, strict=False) if a == b)
    return matches / max_len


def text_similarity(desc1: str, desc2: str) -> float:
    """Blend of token-set Jaccard and same-position token matches, in [0, 1]."""

    words1 = tokenize(desc1)
    words2 = tokenize(desc2)
    if not words1 or not words2:
        return 0.0

    set1, set2 = set(words1), set(words2)
    jaccard = len(set1 & set2) / len(set1 | set2)
    return _JACCARD_SHARE * jaccard + _SEQUENCE_SHARE * _sequence_similarity(words1, words2)


def amount_similarity(a: float, b: float) -> float:
    """Fraction (0..1) of the amount weight earned by two amounts."""

    diff = abs(a - b)
    if diff < _AMOUNT_TOLERANCE:
        return 1.0
    avg = (a + b) / 2
    if avg <= 0:
        return 0.0
    relative = diff / avg
    if relative < _MAX_RELATIVE_AMOUNT_DIFF:
        return 1.0 - relative
    return 0.0


def suggestion_for(matches: Sequence[SimilarityCandidate]) -> tuple[SuggestionLevel, str]:
    """Classify matches into a level plus a human-readable message."""

    if not matches:
        return SuggestionLevel.SAFE, "No similar transactions found; safe to add."

    strong = [m for m in matches if m.similarity >= _STRONG_AT]
    if strong:
        return (
            SuggestionLevel.STRONG,
            f"Found {len(strong)} highly similar transaction(s); "
            "confirm this is not a duplicate before adding.",
        )
    moderate = [m for m in matches if _MODERATE_AT <= m.similarity < _STRONG_AT]
    if moderate:
        return (
            SuggestionLevel.MODERATE,
            f"Found {len(moderate)} possibly similar transaction(s); "
            "consider checking for a duplicate.",
        )
    return (
        SuggestionLevel.WEAK,
        f"Found {len(matches)} loosely similar transaction(s); please double-check.",
    )


class DuplicateDetector:
    """Score a candidate against a pool of existing records."""

    def __init__(self, classifier: TextClassifier | None = None) -> None:
        self._classifier = classifier or TextClassifier()

    def _candidate_category(self, candidate: DuplicateCandidate) -> str:
        if candidate.category and candidate.category.strip():
            return candidate.category
        return self._classifier.classify(candidate.description, candidate.kind)

    def similarity(self, existing: TransactionRecord, candidate: DuplicateCandidate) -> float:
        category = self._candidate_category(candidate)
        return self._similarity(existing, candidate, category)

    def _similarity(
        self, existing: TransactionRecord, candidate: DuplicateCandidate, category: str
    ) -> float:
        score = 0.0
        if existing.kind == candidate.kind:
            score += KIND_WEIGHT
        score += AMOUNT_WEIGHT * amount_similarity(existing.amount, candidate.amount)
        score += DESCRIPTION_WEIGHT * text_similarity(existing.description, candidate.description)
        if existing.category == category:
            score += CATEGORY_WEIGHT
        return score / _TOTAL_WEIGHT

    def find_similar(
        self,
        candidate: DuplicateCandidate,
        pool: Iterable[TransactionRecord],
        similarity_threshold: float = DEFAULT_THRESHOLD,
    ) -> DuplicateCheckResult:
        # Infer the candidate category once for the whole pool
        category = self._candidate_category(candidate)
        scored = [
            SimilarityCandidate(record=rec, similarity=self._similarity(rec, candidate, category))
            for rec in pool
        ]
        matches = sorted(
            (m for m in scored if m.similarity > similarity_threshold),
            key=lambda m: m.similarity,
            reverse=True,
        )
        level, message = suggestion_for(matches)
        return DuplicateCheckResult(
            has_similar=bool(matches),
            matches=tuple(matches),
            suggestion_level=level,
            suggestion=message,
        )


__all__ = [
    "KIND_WEIGHT",
    "AMOUNT_WEIGHT",
    "DESCRIPTION_WEIGHT",
    "CATEGORY_WEIGHT",
    "DEFAULT_THRESHOLD",
    "DuplicateCandidate",
    "DuplicateDetector",
    "amount_similarity",
    "suggestion_for",
    "text_similarity",
    "tokenize",
]
