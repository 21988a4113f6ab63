"""
Bigram Dice similarity and confidence tiers.

Scores are in [0, 1]. A score below MINIMUM_THRESHOLD is not a candidate
match at all; the remaining range is split into high / medium / low tiers.
"""

from __future__ import annotations

from collections import Counter
from typing import Literal, Optional

from playermap.identity.names import NameVariation

ConfidenceLevel = Literal["high", "medium", "low"]

# Confidence thresholds
HIGH_CONFIDENCE_THRESHOLD = 0.92
MEDIUM_CONFIDENCE_THRESHOLD = 0.80
MINIMUM_THRESHOLD = 0.75


def get_bigrams(value: str) -> list[str]:
    """All overlapping two-character substrings of value."""
    return [value[i:i + 2] for i in range(len(value) - 1)]


def dice_coefficient(a: str, b: str) -> float:
    """
    Bigram Dice coefficient between two (already normalized) strings.

    Shared bigrams are a multiset intersection, so repeated bigrams only
    count as often as they occur in both strings and the score is
    symmetric.

    Examples:
        >>> dice_coefficient("night", "nacht")
        0.25
        >>> dice_coefficient("mahomes", "mahomes")
        1.0
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    bigrams_a = Counter(get_bigrams(a))
    bigrams_b = Counter(get_bigrams(b))
    shared = sum((bigrams_a & bigrams_b).values())

    return (2.0 * shared) / (len(a) - 1 + len(b) - 1)


def get_confidence_level(score: float) -> Optional[ConfidenceLevel]:
    """
    Map a similarity score to its confidence tier.

    Returns None below MINIMUM_THRESHOLD.
    """
    if score >= HIGH_CONFIDENCE_THRESHOLD:
        return "high"
    if score >= MEDIUM_CONFIDENCE_THRESHOLD:
        return "medium"
    if score >= MINIMUM_THRESHOLD:
        return "low"
    return None


def best_variation_score(
    target: NameVariation,
    candidate: NameVariation,
) -> tuple[float, str, str]:
    """
    Highest score over every target-variation x candidate-variation pair.

    Returns:
        (score, target_variation, candidate_variation); ties keep the first
        pair encountered
    """
    best = (0.0, target.normalized, candidate.normalized)
    for target_value in target.variations:
        for candidate_value in candidate.variations:
            score = dice_coefficient(target_value, candidate_value)
            if score > best[0]:
                best = (score, target_value, candidate_value)
                if score == 1.0:
                    return best
    return best
