"""
Lookup structures over one provider's full record set.

The index is built once per bulk run and handed to the MatchEngine by the
caller; nothing here is cached at module level.

Structures:
    exact: normalized name -> candidate (last write wins)
    by_last_name: last name -> candidates sharing it
    by_initial_last: "<first initial> <last>" -> candidates
    entries: every candidate, in input order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from playermap.identity.names import NameVariation, create_name_variations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceRecord:
    """Immutable snapshot of one provider's player record."""
    id: str
    display_name: str
    position: Optional[str] = None
    team: Optional[str] = None


@dataclass(frozen=True)
class IndexedCandidate:
    """A candidate record with its name variations precomputed."""
    record: SourceRecord
    names: NameVariation

    @property
    def id(self) -> str:
        return self.record.id


def index_candidates(records: Iterable[SourceRecord]) -> list[IndexedCandidate]:
    """Precompute name variations for a list of records."""
    return [
        IndexedCandidate(record=record, names=create_name_variations(record.display_name))
        for record in records
    ]


@dataclass
class CandidateIndex:
    """Exact-name map plus last-name and initial+last-name buckets."""
    exact: dict[str, IndexedCandidate] = field(default_factory=dict)
    by_last_name: dict[str, list[IndexedCandidate]] = field(default_factory=dict)
    by_initial_last: dict[str, list[IndexedCandidate]] = field(default_factory=dict)
    entries: list[IndexedCandidate] = field(default_factory=list)
    exact_collisions: int = 0

    @classmethod
    def build(cls, records: Iterable[SourceRecord]) -> "CandidateIndex":
        """
        Build the index in a single pass over the records.

        Records whose names normalize to "" are kept in entries but are not
        reachable through the exact map or the buckets.
        """
        index = cls()

        for candidate in index_candidates(records):
            index.entries.append(candidate)

            normalized = candidate.names.normalized
            if not normalized:
                logger.debug(f"Candidate {candidate.id} has no usable name")
                continue

            previous = index.exact.get(normalized)
            if previous is not None and previous.id != candidate.id:
                index.exact_collisions += 1
                logger.debug(
                    f"Exact-name collision on '{normalized}': "
                    f"{previous.id} replaced by {candidate.id}"
                )
            index.exact[normalized] = candidate

            parts = normalized.split()
            index.by_last_name.setdefault(parts[-1], []).append(candidate)

            if len(parts) > 1:
                index.by_initial_last.setdefault(
                    candidate.names.first_initial_last, []
                ).append(candidate)

        logger.debug(
            f"Indexed {len(index.entries)} candidates: "
            f"{len(index.exact)} exact keys, {len(index.by_last_name)} last names, "
            f"{index.exact_collisions} collisions"
        )
        return index

    def __len__(self) -> int:
        return len(self.entries)

    def last_name_bucket(self, last_name: str) -> list[IndexedCandidate]:
        return self.by_last_name.get(last_name, [])

    def initial_last_bucket(self, key: str) -> list[IndexedCandidate]:
        return self.by_initial_last.get(key, [])

    def prefix(self, limit: int) -> list[IndexedCandidate]:
        """The first `limit` candidates in input order."""
        return self.entries[:limit]
