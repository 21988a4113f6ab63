#!/usr/bin/env python3
"""
Manual Mapping Review

Serves the players the automatic pass could not map, each with live
suggestions from the current Sleeper directory, and applies reviewer
decisions:

- accept: write a manual, verified mapping and drop the review entry
- reject: keep the entry (audit trail) but mark it rejected so it sinks
  below every pending entry

Both decisions require a verified caller token.

Usage:
    # Show the top of the queue
    python -m playermap.identity.review list --limit 20

    # Accept a suggestion
    python -m playermap.identity.review accept 00-0033873 4046 "Patrick Mahomes" --token $TOKEN

    # Reject an entry
    python -m playermap.identity.review reject 00-0099999 "Not an NFL player" --token $TOKEN
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Protocol

from playermap.db.init_db import PlayerMapping, PlayerMappingDB, UnmappedPlayer
from playermap.errors import EntryNotFoundError, MappingError, ValidationError
from playermap.identity.candidate_index import index_candidates
from playermap.identity.matcher import FuzzyMatchResult, find_multiple_matches
from playermap.lib.auth import Principal
from playermap.sources.base import RecordSource

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

DEFAULT_REVIEW_LIMIT = 50
MAX_SUGGESTIONS = 5
REJECTED_NOTE_PREFIX = "Rejected: "


class Verifier(Protocol):
    def verify(self, token: Optional[str]) -> Principal:
        ...


@dataclass
class ReviewItem:
    """A queued player plus live suggestions."""
    id: Optional[int]
    player_id: str
    display_name: str
    position: Optional[str]
    team: Optional[str]
    attempts_count: int
    status: str
    notes: Optional[str]
    suggestions: list[FuzzyMatchResult] = field(default_factory=list)

    @classmethod
    def from_entry(
        cls,
        entry: UnmappedPlayer,
        suggestions: list[FuzzyMatchResult],
    ) -> "ReviewItem":
        return cls(
            id=entry.id,
            player_id=entry.player_id,
            display_name=entry.display_name,
            position=entry.position,
            team=entry.team,
            attempts_count=entry.attempts_count,
            status=entry.status,
            notes=entry.notes,
            suggestions=suggestions,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["suggestions"] = [
            {
                "candidate_id": s.candidate_id,
                "candidate_name": s.candidate_name,
                "score": round(s.score, 4),
                "confidence": s.confidence,
            }
            for s in self.suggestions
        ]
        return data


class ReviewWorkflow:
    """
    Review queue and reviewer decisions.

    The candidate directory is fetched fresh for every listing so that
    suggestions reflect the provider's current state.
    """

    def __init__(
        self,
        store: PlayerMappingDB,
        candidate_source: RecordSource,
        verifier: Verifier,
        source: str = "nflverse",
        max_suggestions: int = MAX_SUGGESTIONS,
    ):
        self.store = store
        self.candidate_source = candidate_source
        self.verifier = verifier
        self.source = source
        self.max_suggestions = max_suggestions

    def list_for_review(self, limit: int = DEFAULT_REVIEW_LIMIT) -> list[ReviewItem]:
        """
        Highest-priority review entries with suggestions.

        Args:
            limit: Maximum number of entries

        Returns:
            ReviewItems, pending entries first, most attempts first
        """
        if limit < 1:
            raise ValidationError(f"limit must be positive, got {limit}")

        entries = self.store.list_review_queue(limit=limit, source=self.source)
        if not entries:
            return []

        candidates = index_candidates(self.candidate_source.fetch_records())

        items = [
            ReviewItem.from_entry(
                entry,
                find_multiple_matches(entry.display_name, candidates, self.max_suggestions),
            )
            for entry in entries
        ]
        logger.info(f"Prepared {len(items)} review entries")
        return items

    def accept(
        self,
        token: Optional[str],
        nflverse_id: str,
        sleeper_id: str,
        canonical_name: str,
        notes: Optional[str] = None,
    ) -> PlayerMapping:
        """
        Confirm a mapping on a reviewer's authority.

        Retrying an accept is harmless: the mapping is upserted and a
        missing review entry is not an error.

        Raises:
            AuthorizationError: token missing or invalid (nothing written)
            ValidationError: missing ids or name
        """
        principal = self.verifier.verify(token)

        mapping = PlayerMapping(
            nflverse_id=nflverse_id,
            sleeper_id=sleeper_id,
            canonical_name=canonical_name,
            confidence_score=1.0,
            match_method="manual",
            verified=True,
            notes=notes,
        )
        entry = self.store.get_unmapped(nflverse_id, source=self.source)
        if entry is not None:
            mapping = replace(mapping, position=entry.position, team=entry.team)
        else:
            existing = self.store.get_mapping(nflverse_id)
            if existing is not None:
                mapping = replace(mapping, position=existing["position"], team=existing["team"])

        removed = self.store.accept_manual_mapping(mapping, source=self.source)
        logger.info(
            f"{principal.user_id} mapped {nflverse_id} -> {sleeper_id} "
            f"({canonical_name}){'' if removed else ' [no queued entry]'}"
        )
        return mapping

    def reject(self, token: Optional[str], nflverse_id: str, reason: str) -> None:
        """
        Reject a review entry without deleting it.

        Raises:
            AuthorizationError: token missing or invalid (nothing written)
            EntryNotFoundError: no queued entry for nflverse_id
        """
        principal = self.verifier.verify(token)

        if not nflverse_id:
            raise ValidationError("nflverse_id is required")
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")

        updated = self.store.reject_unmapped(
            nflverse_id,
            f"{REJECTED_NOTE_PREFIX}{reason.strip()}",
            source=self.source,
        )
        if not updated:
            raise EntryNotFoundError(f"No review entry for {self.source} player {nflverse_id}")

        logger.info(f"{principal.user_id} rejected {nflverse_id}: {reason.strip()}")


def main() -> None:
    """Main entry point for CLI usage."""
    from playermap.lib.mapping_api import MappingService

    parser = argparse.ArgumentParser(description="Manual mapping review")
    parser.add_argument(
        "--token",
        default=os.getenv("PLAYERMAP_TOKEN"),
        help="Bearer token (default: $PLAYERMAP_TOKEN)"
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Database path (default: from config)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    list_parser = sub.add_parser("list", help="Show the review queue")
    list_parser.add_argument("--limit", type=int, default=DEFAULT_REVIEW_LIMIT)

    accept_parser = sub.add_parser("accept", help="Accept a mapping")
    accept_parser.add_argument("nflverse_id")
    accept_parser.add_argument("sleeper_id")
    accept_parser.add_argument("canonical_name")
    accept_parser.add_argument("--notes", default=None)

    reject_parser = sub.add_parser("reject", help="Reject a review entry")
    reject_parser.add_argument("nflverse_id")
    reject_parser.add_argument("reason")

    args = parser.parse_args()

    try:
        service = MappingService.from_config(db_path=args.db)
    except MappingError as e:
        logger.error(str(e))
        sys.exit(1)

    if args.command == "list":
        result = service.list_for_review(limit=args.limit)
    elif args.command == "accept":
        result = service.accept_mapping(
            {
                "nflverse_id": args.nflverse_id,
                "sleeper_id": args.sleeper_id,
                "canonical_name": args.canonical_name,
                "notes": args.notes,
            },
            token=args.token,
        )
    else:
        result = service.reject_mapping(
            {"nflverse_id": args.nflverse_id, "reason": args.reason},
            token=args.token,
        )

    print(json.dumps(result.to_dict(), indent=2))
    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
