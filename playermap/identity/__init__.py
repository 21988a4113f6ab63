"""
Identity resolution package.

This package links nflverse player ids to Sleeper player ids.

Modules:
    names: Name normalization and variation generation
    similarity: Bigram Dice scoring and confidence tiers
    candidate_index: Exact-name and bucket lookups over a record set
    matcher: Exact / fuzzy / none resolution of a single record
    bulk_mapping: Full mapping pass persisted in one batch
    review: Review queue and reviewer accept/reject decisions
    analytics: Mapping health reports
"""

from playermap.identity.candidate_index import CandidateIndex, SourceRecord
from playermap.identity.matcher import (
    MatchEngine,
    MatchOutcome,
    find_best_match,
    find_multiple_matches,
)
from playermap.identity.names import create_name_variations, normalize_name
from playermap.identity.similarity import dice_coefficient, get_confidence_level

__all__ = [
    "CandidateIndex",
    "SourceRecord",
    "MatchEngine",
    "MatchOutcome",
    "find_best_match",
    "find_multiple_matches",
    "create_name_variations",
    "normalize_name",
    "dice_coefficient",
    "get_confidence_level",
]
