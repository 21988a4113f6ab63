#!/usr/bin/env python3
"""
Bulk Player Mapping

Runs one full resolution pass: nflverse players (targets) are matched
against the Sleeper player directory (candidates) and the outcome is
written to the mapping store in a single batch.

Classification:
    exact               -> mapping (confidence 1.0, verified)
    fuzzy, high         -> mapping (unverified)
    fuzzy, medium/low   -> review queue ("manual review needed")
    none                -> review queue ("unmapped")

Both record sets are fetched before anything else happens; if either
fetch fails the run aborts before any mapping or review entry is written
(only the failed run itself is recorded in mapping_runs).

Usage:
    python -m playermap.identity.bulk_mapping
    python -m playermap.identity.bulk_mapping --season 2024 --progress
    python -m playermap.identity.bulk_mapping --no-position-filter --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sqlite3
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from tqdm import tqdm

from playermap.db.init_db import PlayerMapping, PlayerMappingDB, UnmappedPlayer
from playermap.errors import MappingError
from playermap.identity.candidate_index import CandidateIndex, SourceRecord
from playermap.identity.matcher import MatchEngine, MatchOutcome
from playermap.sources.base import RecordSource

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

RUN_TYPE = "bulk-player-mapping"
TARGET_SOURCE = "nflverse"


@dataclass
class MappingRunResult:
    """Counts for one bulk run."""
    exact_matches: int = 0
    fuzzy_matches: int = 0
    manual_review_needed: int = 0
    unmapped: int = 0
    total_processed: int = 0
    skipped_verified: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "exact_matches": self.exact_matches,
            "fuzzy_matches": self.fuzzy_matches,
            "manual_review_needed": self.manual_review_needed,
            "unmapped": self.unmapped,
            "total_processed": self.total_processed,
            "skipped_verified": self.skipped_verified,
        }


def _unique_by_id(records: list[SourceRecord]) -> list[SourceRecord]:
    seen: set[str] = set()
    unique = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


class BulkResolutionJob:
    """
    One full nflverse -> Sleeper mapping pass.

    Collaborators are injected: two record sources, the store that
    receives the batch, and a run logger (the store by default).
    """

    def __init__(
        self,
        store: PlayerMappingDB,
        target_source: RecordSource,
        candidate_source: RecordSource,
        engine: Optional[MatchEngine] = None,
        run_logger: Optional[Any] = None,
        use_position_filter: bool = True,
        show_progress: bool = False,
    ):
        self.store = store
        self.target_source = target_source
        self.candidate_source = candidate_source
        self.engine = engine or MatchEngine()
        self.run_logger = run_logger if run_logger is not None else store
        self.use_position_filter = use_position_filter
        self.show_progress = show_progress

    def run(self) -> MappingRunResult:
        """
        Execute the pass and persist the batch.

        Returns:
            MappingRunResult with per-bucket counts

        Raises:
            SourceFetchError: either record set could not be loaded
            PersistenceError: the batch write failed (nothing committed)
        """
        try:
            targets = _unique_by_id(self.target_source.fetch_records())
            candidates = self.candidate_source.fetch_records()
        except MappingError as e:
            logger.error(f"Aborting bulk mapping before any writes: {e}")
            self._log_run("error", 0, str(e))
            raise

        logger.info(
            f"Resolving {len(targets)} {TARGET_SOURCE} players against "
            f"{len(candidates)} candidates"
        )

        index = CandidateIndex.build(candidates)
        locked = self.store.get_human_mapped_ids()

        result = MappingRunResult()
        mappings: list[PlayerMapping] = []
        unmapped: list[UnmappedPlayer] = []

        for target in tqdm(
            targets,
            desc="Mapping players",
            unit="player",
            disable=not self.show_progress,
        ):
            if target.id in locked:
                result.skipped_verified += 1
                continue

            position = target.position if self.use_position_filter else None
            outcome = self.engine.resolve(target, index, position_filter=position)
            self._classify(target, outcome, result, mappings, unmapped)

        try:
            self.store.persist_run(mappings, unmapped)
        except MappingError as e:
            logger.error(f"Bulk mapping failed while writing results: {e}")
            self._log_run("error", result.total_processed, str(e))
            raise

        self._log_run("success", result.total_processed, details=result.to_dict())
        self._log_summary(result)
        return result

    def _classify(
        self,
        target: SourceRecord,
        outcome: MatchOutcome,
        result: MappingRunResult,
        mappings: list[PlayerMapping],
        unmapped: list[UnmappedPlayer],
    ) -> None:
        result.total_processed += 1

        if outcome.match_type == "exact":
            result.exact_matches += 1
            mappings.append(PlayerMapping(
                nflverse_id=target.id,
                sleeper_id=outcome.candidate_id,
                canonical_name=target.display_name,
                confidence_score=1.0,
                match_method="exact",
                verified=True,
                position=target.position,
                team=target.team,
            ))
            return

        if outcome.match_type == "fuzzy" and outcome.confidence == "high":
            result.fuzzy_matches += 1
            mappings.append(PlayerMapping(
                nflverse_id=target.id,
                sleeper_id=outcome.candidate_id,
                canonical_name=target.display_name,
                confidence_score=outcome.confidence_score,
                match_method="fuzzy",
                verified=False,
                position=target.position,
                team=target.team,
                notes=(
                    f"Fuzzy match: {outcome.candidate_name} "
                    f"({outcome.confidence_score:.3f})"
                ),
            ))
            return

        if outcome.match_type == "fuzzy":
            result.manual_review_needed += 1
            notes = (
                f"Low confidence fuzzy match: {outcome.candidate_name} "
                f"({outcome.confidence_score:.3f})"
            )
        else:
            result.unmapped += 1
            notes = "No match found"

        unmapped.append(UnmappedPlayer(
            source=TARGET_SOURCE,
            player_id=target.id,
            display_name=target.display_name,
            position=target.position,
            team=target.team,
            notes=notes,
        ))

    def _log_run(
        self,
        status: str,
        records_processed: int,
        error_message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        if self.run_logger is None:
            return
        try:
            self.run_logger.log_run(
                RUN_TYPE,
                status,
                records_processed=records_processed,
                error_message=error_message,
                details=details,
            )
        except sqlite3.Error as e:
            logger.warning(f"Could not record {RUN_TYPE} run: {e}")

    @staticmethod
    def _log_summary(result: MappingRunResult) -> None:
        logger.info("=" * 60)
        logger.info("BULK MAPPING COMPLETE")
        logger.info("=" * 60)
        logger.info(f"Processed:            {result.total_processed}")
        logger.info(f"Exact matches:        {result.exact_matches}")
        logger.info(f"Fuzzy matches (high): {result.fuzzy_matches}")
        logger.info(f"Needs manual review:  {result.manual_review_needed}")
        logger.info(f"Unmapped:             {result.unmapped}")
        if result.skipped_verified:
            logger.info(f"Skipped (reviewed):   {result.skipped_verified}")


def main() -> None:
    """Main entry point for CLI usage."""
    from playermap import config
    from playermap.sources.nflverse import NFLVersePlayerSource
    from playermap.sources.sleeper import SleeperPlayerSource

    parser = argparse.ArgumentParser(
        description="Map nflverse players to Sleeper ids"
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Database path (default: from config)"
    )
    parser.add_argument(
        "--season",
        type=int,
        default=None,
        help="nflverse stats season to read players from"
    )
    parser.add_argument(
        "--nflverse-csv",
        default=None,
        help="Local player_stats CSV instead of the release download"
    )
    parser.add_argument(
        "--no-position-filter",
        action="store_true",
        help="Allow fuzzy matches across positions"
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run result as JSON"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    store = PlayerMappingDB(args.db or config.get_db_path())
    try:
        store.ensure_ready()
    except MappingError as e:
        logger.error(str(e))
        sys.exit(1)

    timeout = config.get_http_timeout()
    job = BulkResolutionJob(
        store=store,
        target_source=NFLVersePlayerSource(
            args.nflverse_csv or config.get_nflverse_stats_url(args.season)
        ),
        candidate_source=SleeperPlayerSource(
            config.get_sleeper_players_url(), timeout=timeout
        ),
        use_position_filter=not args.no_position_filter,
        show_progress=args.progress,
    )

    try:
        result = job.run()
    except MappingError as e:
        logger.error(f"Bulk mapping failed: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))


if __name__ == "__main__":
    main()
