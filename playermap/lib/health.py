#!/usr/bin/env python3
"""
System Health Check

Reports whether each piece the mapping subsystem depends on is usable:

- database: store reachable, tables present, integrity checks passing
- last_run: most recent bulk mapping run succeeded within STALE_RUN_AFTER
- nflverse: player stats CSV reachable (HEAD request, or file exists)
- sleeper: player directory endpoint reachable (HEAD request)

Each check is healthy, degraded or down. Overall status is down if any
check is down, degraded if any is degraded, healthy otherwise.

Usage:
    python -m playermap.lib.health
    python -m playermap.lib.health --db db/player_mapping.sqlite
"""

from __future__ import annotations

import argparse
import json
import logging
import sqlite3
import sys
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Literal, Optional, Union

import requests

from playermap.config import DEFAULT_HTTP_TIMEOUT
from playermap.db.init_db import SQLITE_TIMESTAMP_FORMAT, PlayerMappingDB
from playermap.errors import ConfigurationError
from playermap.identity.bulk_mapping import RUN_TYPE

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

HealthStatus = Literal["healthy", "degraded", "down"]

STALE_RUN_AFTER = timedelta(hours=24)


@dataclass
class HealthCheckResult:
    """Outcome of one dependency check."""
    service: str
    status: HealthStatus
    response_time_ms: Optional[float] = None
    error: Optional[str] = None
    details: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def overall_status(results: Iterable[HealthCheckResult]) -> HealthStatus:
    statuses = {r.status for r in results}
    if "down" in statuses:
        return "down"
    if "degraded" in statuses:
        return "degraded"
    return "healthy"


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 1)


def _is_url(location: Union[str, Path]) -> bool:
    return str(location).startswith(("http://", "https://"))


class HealthChecker:
    """
    Runs the dependency checks.

    Provider checks are skipped when no location is given for them.
    """

    def __init__(
        self,
        store: PlayerMappingDB,
        nflverse_location: Optional[Union[str, Path]] = None,
        sleeper_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.nflverse_location = nflverse_location
        self.sleeper_url = sleeper_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def run(self) -> dict[str, Any]:
        """
        Run every configured check.

        Returns:
            dict keyed by service name, plus 'overall' and 'timestamp'
        """
        database = self.check_database()
        if database.status == "down":
            # Opening a missing sqlite file would create it
            last_run = HealthCheckResult("last_run", "down", error="Database unavailable")
        else:
            last_run = self.check_last_run()

        results = [database, last_run]
        if self.nflverse_location:
            results.append(self.check_nflverse())
        if self.sleeper_url:
            results.append(self.check_sleeper())

        report: dict[str, Any] = {r.service: r.to_dict() for r in results}
        report["overall"] = overall_status(results)
        report["timestamp"] = self.clock().isoformat()

        for r in results:
            if r.status != "healthy":
                logger.warning(f"Health: {r.service} is {r.status}: {r.error}")
        return report

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def check_database(self) -> HealthCheckResult:
        start = time.monotonic()
        try:
            self.store.ensure_ready()
        except ConfigurationError as e:
            return HealthCheckResult("database", "down", _elapsed_ms(start), error=str(e))

        integrity = self.store.check_integrity()
        elapsed = _elapsed_ms(start)
        if not integrity["valid"]:
            return HealthCheckResult(
                "database", "degraded", elapsed,
                error="; ".join(integrity["errors"]),
                details=integrity.get("stats"),
            )
        return HealthCheckResult("database", "healthy", elapsed, details=integrity.get("stats"))

    def check_last_run(self) -> HealthCheckResult:
        try:
            run = self.store.get_last_run(RUN_TYPE)
        except sqlite3.Error as e:
            return HealthCheckResult("last_run", "down", error=f"Run log unreadable: {e}")

        if run is None:
            return HealthCheckResult("last_run", "degraded", error="No bulk mapping run recorded")

        completed = datetime.strptime(run["completed_at"], SQLITE_TIMESTAMP_FORMAT)
        completed = completed.replace(tzinfo=timezone.utc)
        details = {"completed_at": run["completed_at"], "status": run["status"]}

        if run["status"] != "success":
            return HealthCheckResult(
                "last_run", "degraded", error=run["error_message"], details=details
            )
        if self.clock() - completed > STALE_RUN_AFTER:
            return HealthCheckResult(
                "last_run", "degraded",
                error=f"Last successful run is older than {STALE_RUN_AFTER}",
                details=details,
            )
        return HealthCheckResult("last_run", "healthy", details=details)

    def check_nflverse(self) -> HealthCheckResult:
        location = self.nflverse_location
        if not _is_url(location):
            if Path(location).exists():
                return HealthCheckResult("nflverse", "healthy", details={"location": str(location)})
            return HealthCheckResult("nflverse", "down", error=f"File not found: {location}")
        return self._probe("nflverse", str(location))

    def check_sleeper(self) -> HealthCheckResult:
        return self._probe("sleeper", self.sleeper_url)

    def _probe(self, service: str, url: str) -> HealthCheckResult:
        start = time.monotonic()
        try:
            r = self.session.head(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            return HealthCheckResult(service, "down", _elapsed_ms(start), error=str(e))

        elapsed = _elapsed_ms(start)
        if r.status_code >= 400:
            return HealthCheckResult(service, "down", elapsed, error=f"HTTP {r.status_code}")
        return HealthCheckResult(service, "healthy", elapsed)


def main() -> None:
    """Main entry point for CLI usage."""
    from playermap import config
    from playermap.errors import MappingError

    parser = argparse.ArgumentParser(description="Player mapping system health")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Database path (default: from config)"
    )
    args = parser.parse_args()

    try:
        checker = HealthChecker(
            store=PlayerMappingDB(args.db or config.get_db_path()),
            nflverse_location=config.get_nflverse_stats_url(),
            sleeper_url=config.get_sleeper_players_url(),
            timeout=config.get_http_timeout(),
        )
    except MappingError as e:
        logger.error(str(e))
        sys.exit(1)

    report = checker.run()
    print(json.dumps(report, indent=2))
    if report["overall"] == "down":
        sys.exit(1)


if __name__ == "__main__":
    main()
