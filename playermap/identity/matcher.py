#!/usr/bin/env python3
"""
Match Engine

Resolves one target record against a CandidateIndex.

Algorithm (in order, first success wins):
1. Exact lookup of every target name variation (confidence=1.0)
2. Best Dice score within the target's last-name bucket
3. If that bucket is empty, best score over the first
   MAX_FALLBACK_CANDIDATES records of the index
4. Otherwise no match

A fuzzy result must clear MINIMUM_THRESHOLD (0.75) to count.

Usage:
    from playermap.identity.candidate_index import CandidateIndex, SourceRecord
    from playermap.identity.matcher import MatchEngine

    index = CandidateIndex.build(sleeper_records)
    outcome = MatchEngine().resolve(target, index, position_filter="QB")
    print(outcome.match_type, outcome.candidate_id, outcome.confidence_score)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Literal, Optional

from playermap.identity.candidate_index import (
    CandidateIndex,
    IndexedCandidate,
    SourceRecord,
    index_candidates,
)
from playermap.identity.names import NameVariation, create_name_variations
from playermap.identity.similarity import (
    MINIMUM_THRESHOLD,
    ConfidenceLevel,
    best_variation_score,
    get_confidence_level,
)

logger = logging.getLogger(__name__)

MatchType = Literal["exact", "fuzzy", "none"]

# Cap on the full-list scan used when a surname has no bucket
MAX_FALLBACK_CANDIDATES = 1000

CONFIDENCE_EXACT = 1.0


@dataclass(frozen=True)
class FuzzyMatchResult:
    """Best-scoring candidate for a target name."""
    candidate_id: str
    candidate_name: str
    score: float
    confidence: ConfidenceLevel
    matched_variation: str = ""
    method: str = "dice_coefficient"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MatchOutcome:
    """Result of resolving a single target record."""
    match_type: MatchType
    candidate: Optional[SourceRecord] = None
    fuzzy: Optional[FuzzyMatchResult] = None
    matched_variation: Optional[str] = None

    @property
    def candidate_id(self) -> Optional[str]:
        return self.candidate.id if self.candidate else None

    @property
    def candidate_name(self) -> Optional[str]:
        return self.candidate.display_name if self.candidate else None

    @property
    def confidence_score(self) -> float:
        if self.match_type == "exact":
            return CONFIDENCE_EXACT
        if self.fuzzy is not None:
            return self.fuzzy.score
        return 0.0

    @property
    def confidence(self) -> Optional[ConfidenceLevel]:
        if self.match_type == "exact":
            return "high"
        return self.fuzzy.confidence if self.fuzzy else None


NO_MATCH = MatchOutcome(match_type="none")


def _position_eligible(record: SourceRecord, position: Optional[str]) -> bool:
    if not position:
        return True
    return bool(record.position) and record.position.upper() == position.upper()


def _best_candidate(
    target: NameVariation,
    candidates: Iterable[IndexedCandidate],
    position: Optional[str] = None,
) -> Optional[tuple[IndexedCandidate, FuzzyMatchResult]]:
    best: Optional[tuple[IndexedCandidate, FuzzyMatchResult]] = None

    for candidate in candidates:
        if not _position_eligible(candidate.record, position):
            continue

        score, _, candidate_value = best_variation_score(target, candidate.names)
        if score < MINIMUM_THRESHOLD:
            continue
        if best is None or score > best[1].score:
            best = (candidate, FuzzyMatchResult(
                candidate_id=candidate.id,
                candidate_name=candidate.record.display_name,
                score=score,
                confidence=get_confidence_level(score),
                matched_variation=candidate_value,
            ))
            if score == 1.0:
                break

    return best


def find_best_match(
    target: NameVariation,
    candidates: Iterable[IndexedCandidate],
    position: Optional[str] = None,
) -> Optional[FuzzyMatchResult]:
    """
    Single highest-scoring candidate across all variation pairs.

    Args:
        target: Variations of the target name
        candidates: Candidates to score
        position: Only candidates at this position are eligible

    Returns:
        FuzzyMatchResult, or None if nothing reaches MINIMUM_THRESHOLD
    """
    best = _best_candidate(target, candidates, position)
    return best[1] if best else None


def find_multiple_matches(
    target_name: str,
    candidates: Iterable[IndexedCandidate] | Iterable[SourceRecord],
    max_results: int = 5,
) -> list[FuzzyMatchResult]:
    """
    Score every candidate and return the best ones, highest first.

    No bucket shortcut and no early exit: each candidate keeps its best
    score across all variation pairs, anything under MINIMUM_THRESHOLD is
    dropped, and the list is truncated to max_results.

    Args:
        target_name: Raw target display name
        candidates: IndexedCandidate objects (or plain SourceRecords)
        max_results: Maximum number of suggestions

    Returns:
        List of FuzzyMatchResult sorted by descending score
    """
    target = create_name_variations(target_name)

    indexed = [
        c if isinstance(c, IndexedCandidate) else index_candidates([c])[0]
        for c in candidates
    ]

    results = []
    for candidate in indexed:
        score, _, candidate_value = best_variation_score(target, candidate.names)
        confidence = get_confidence_level(score)
        if confidence is None:
            continue
        results.append(FuzzyMatchResult(
            candidate_id=candidate.id,
            candidate_name=candidate.record.display_name,
            score=score,
            confidence=confidence,
            matched_variation=candidate_value,
        ))

    results.sort(key=lambda r: r.score, reverse=True)
    return results[:max_results]


class MatchEngine:
    """
    Resolves target records against a caller-owned CandidateIndex.

    The engine holds no index state of its own; the same engine can be
    reused across runs with different indexes.
    """

    def __init__(self, fallback_limit: int = MAX_FALLBACK_CANDIDATES):
        self.fallback_limit = fallback_limit

    def resolve(
        self,
        target: SourceRecord,
        index: CandidateIndex,
        position_filter: Optional[str] = None,
    ) -> MatchOutcome:
        """
        Resolve a target record.

        Args:
            target: Record from the statistics provider
            index: Index over the draft provider's records
            position_filter: If set, only candidates at this position count

        Returns:
            MatchOutcome with match_type exact, fuzzy or none
        """
        names = create_name_variations(target.display_name)
        if not names.normalized:
            logger.debug(f"Target {target.id} has no usable name")
            return NO_MATCH

        # ----- Pass 1: exact variation lookup -----
        for variation in names.variations:
            hit = self._exact_lookup(variation, index, position_filter)
            if hit is not None:
                return MatchOutcome(
                    match_type="exact",
                    candidate=hit.record,
                    matched_variation=variation,
                )

        # ----- Pass 2: last-name bucket -----
        last_name = names.normalized.split()[-1]
        bucket = index.last_name_bucket(last_name)

        if bucket:
            best = _best_candidate(names, bucket, position_filter)
        else:
            # ----- Pass 3: capped scan of the full candidate list -----
            logger.debug(
                f"No candidates share last name '{last_name}'; "
                f"scanning first {self.fallback_limit} records"
            )
            best = _best_candidate(names, index.prefix(self.fallback_limit), position_filter)

        if best is None:
            return NO_MATCH

        candidate, result = best
        return MatchOutcome(
            match_type="fuzzy",
            candidate=candidate.record,
            fuzzy=result,
            matched_variation=result.matched_variation,
        )

    def _exact_lookup(
        self,
        variation: str,
        index: CandidateIndex,
        position_filter: Optional[str],
    ) -> Optional[IndexedCandidate]:
        hit = index.exact.get(variation)
        if hit is None:
            return None
        if _position_eligible(hit.record, position_filter):
            return hit

        # The exact map keeps one record per name; a same-named player at
        # the requested position can still be in the surname bucket. Exact
        # keys are candidates' normalized names, so the last token of the
        # matched variation is that bucket's key.
        for candidate in index.last_name_bucket(variation.split()[-1]):
            if (
                candidate.names.normalized == variation
                and _position_eligible(candidate.record, position_filter)
            ):
                return candidate
        return None
