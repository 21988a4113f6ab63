#!/usr/bin/env python3
"""
Mapping Analytics

Read-only health reports over the mapping store:

- summary: counts by method, confidence tier, verification status,
  unmapped players by source, and recent activity
- unmapped: review entries with the most failed attempts
- low-confidence: unverified mappings scoring under 0.85, worst first

Rows carrying an unknown match_method or source are logged and left out
of the tallies.

Usage:
    python -m playermap.identity.analytics
    python -m playermap.identity.analytics unmapped --limit 50
    python -m playermap.identity.analytics low-confidence
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Literal, Optional

from playermap.db.init_db import MATCH_METHODS, UNMAPPED_SOURCES, PlayerMappingDB
from playermap.identity.bulk_mapping import RUN_TYPE

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ReportType = Literal["summary", "unmapped", "low-confidence"]
REPORT_TYPES: tuple[str, ...] = ("summary", "unmapped", "low-confidence")

DEFAULT_REPORT_LIMIT = 20
LOW_CONFIDENCE_THRESHOLD = 0.85

# Reporting tiers (looser than the matcher's)
REPORT_HIGH_THRESHOLD = 0.9
REPORT_MEDIUM_THRESHOLD = 0.8


def confidence_bucket(score: float) -> str:
    if score > REPORT_HIGH_THRESHOLD:
        return "high"
    if score >= REPORT_MEDIUM_THRESHOLD:
        return "medium"
    return "low"


class AnalyticsReporter:
    """Aggregates mapping store contents into health reports."""

    def __init__(
        self,
        store: PlayerMappingDB,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def summary(self) -> dict[str, Any]:
        """
        Build the summary report.

        Returns:
            dict with total_mappings, by_method, by_confidence,
            verification_status, unmapped_players, recent_activity,
            excluded_records and last_run
        """
        by_method = {method: 0 for method in MATCH_METHODS}
        by_confidence = {"high": 0, "medium": 0, "low": 0}
        verification = {"verified": 0, "unverified": 0}
        excluded = 0

        for row in self.store.iter_mapping_stats():
            method = row["match_method"]
            if method not in by_method:
                logger.warning(
                    f"Mapping {row['id']} has unknown match_method {method!r}; excluded"
                )
                excluded += 1
                continue

            by_method[method] += 1
            by_confidence[confidence_bucket(row["confidence_score"])] += 1
            if row["verified"]:
                verification["verified"] += 1
            else:
                verification["unverified"] += 1

        unmapped = {source: 0 for source in UNMAPPED_SOURCES}
        for source, count in self.store.count_unmapped_by_source().items():
            if source not in unmapped:
                logger.warning(
                    f"{count} unmapped entries have unknown source {source!r}; excluded"
                )
                excluded += count
                continue
            unmapped[source] = count

        now = self.clock()
        recent = {
            "last_7_days": self.store.count_mappings_created_since(now - timedelta(days=7)),
            "last_30_days": self.store.count_mappings_created_since(now - timedelta(days=30)),
        }

        return {
            "total_mappings": sum(by_method.values()),
            "by_method": by_method,
            "by_confidence": by_confidence,
            "verification_status": verification,
            "unmapped_players": unmapped,
            "recent_activity": recent,
            "excluded_records": excluded,
            "last_run": self.store.get_last_run(RUN_TYPE),
        }

    def top_unmapped(self, limit: int = DEFAULT_REPORT_LIMIT) -> list[dict[str, Any]]:
        """Review entries ordered by attempts_count descending."""
        return self.store.top_unmapped(limit=limit)

    def low_confidence(self, limit: int = DEFAULT_REPORT_LIMIT) -> list[dict[str, Any]]:
        """Unverified mappings under LOW_CONFIDENCE_THRESHOLD, worst first."""
        return self.store.low_confidence_mappings(
            limit=limit, threshold=LOW_CONFIDENCE_THRESHOLD
        )

    def report(self, name: Optional[str] = "summary", limit: Optional[int] = None) -> Any:
        """
        Dispatch a report by name. Unknown names fall back to summary.
        """
        if name not in REPORT_TYPES:
            logger.warning(f"Unknown report {name!r}; returning summary")
            name = "summary"

        if name == "unmapped":
            return self.top_unmapped(limit or DEFAULT_REPORT_LIMIT)
        if name == "low-confidence":
            return self.low_confidence(limit or DEFAULT_REPORT_LIMIT)
        return self.summary()


def main() -> None:
    """Main entry point for CLI usage."""
    from playermap import config
    from playermap.errors import MappingError

    parser = argparse.ArgumentParser(description="Player mapping health reports")
    parser.add_argument(
        "report",
        nargs="?",
        default="summary",
        help=f"Report name ({', '.join(REPORT_TYPES)})"
    )
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Database path (default: from config)"
    )
    args = parser.parse_args()

    store = PlayerMappingDB(args.db or config.get_db_path())
    try:
        store.ensure_ready()
    except MappingError as e:
        logger.error(str(e))
        sys.exit(1)

    result = AnalyticsReporter(store).report(args.report, args.limit)
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
