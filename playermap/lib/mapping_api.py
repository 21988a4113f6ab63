"""
External operations for the player mapping subsystem.

Every operation returns an OperationResult envelope and never raises:

    {"success": true,  "data": ...}
    {"success": false, "error": "...", "error_type": "unauthorized"}

error_type is one of: unauthorized, validation, not_found,
source_unavailable, persistence, auth_service, configuration, internal.

Usage:
    from playermap.lib.mapping_api import MappingService

    service = MappingService.from_config()

    service.run_bulk_mapping()
    service.list_for_review(limit=25)
    service.accept_mapping(
        {"nflverse_id": "00-0033873", "sleeper_id": "4046",
         "canonical_name": "Patrick Mahomes"},
        token=bearer_token,
    )
    service.reject_mapping({"nflverse_id": "00-0099999", "reason": "dup"}, token=bearer_token)
    service.get_report("low-confidence", limit=10)
    service.health_check()
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from playermap import config
from playermap.db.init_db import PlayerMappingDB
from playermap.errors import MappingError
from playermap.identity.analytics import AnalyticsReporter
from playermap.identity.bulk_mapping import BulkResolutionJob
from playermap.identity.matcher import MatchEngine
from playermap.identity.review import DEFAULT_REVIEW_LIMIT, ReviewWorkflow, Verifier
from playermap.lib.auth import TokenVerifier
from playermap.lib.health import HealthChecker
from playermap.sources.base import RecordSource
from playermap.sources.nflverse import NFLVersePlayerSource
from playermap.sources.sleeper import SleeperPlayerSource

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Success flag plus either a payload or a human-readable error."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error, "error_type": self.error_type}


def _field(payload: dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    return str(value).strip() or None


class MappingService:
    """
    Wires the store, provider readers, token verifier and health checker
    into the external operations.
    """

    def __init__(
        self,
        store: PlayerMappingDB,
        target_source: RecordSource,
        candidate_source: RecordSource,
        verifier: Verifier,
        engine: Optional[MatchEngine] = None,
        health_checker: Optional[HealthChecker] = None,
    ):
        self.store = store
        self.target_source = target_source
        self.candidate_source = candidate_source
        self.verifier = verifier
        self.engine = engine or MatchEngine()
        self.health_checker = health_checker or HealthChecker(store)

    @classmethod
    def from_config(cls, db_path: Optional[str | Path] = None) -> "MappingService":
        """
        Build a service from configuration.

        Raises:
            ConfigurationError: the mapping database is missing or not
                initialized (fatal at startup)
        """
        store = PlayerMappingDB(db_path or config.get_db_path())
        store.ensure_ready()

        timeout = config.get_http_timeout()
        auth = config.get_auth_settings()
        if not auth["url"]:
            logger.warning("Auth service URL not configured; review decisions will be refused")

        nflverse_location = config.get_nflverse_stats_url()
        sleeper_url = config.get_sleeper_players_url()

        return cls(
            store=store,
            target_source=NFLVersePlayerSource(nflverse_location),
            candidate_source=SleeperPlayerSource(sleeper_url, timeout=timeout),
            verifier=TokenVerifier(auth["url"], api_key=auth["api_key"], timeout=auth["timeout"]),
            health_checker=HealthChecker(
                store,
                nflverse_location=nflverse_location,
                sleeper_url=sleeper_url,
                timeout=timeout,
            ),
        )

    def _execute(self, operation: str, func: Callable[[], Any]) -> OperationResult:
        try:
            return OperationResult(success=True, data=func())
        except MappingError as e:
            logger.warning(f"{operation} failed ({e.error_type}): {e}")
            return OperationResult(success=False, error=str(e), error_type=e.error_type)
        except sqlite3.Error as e:
            logger.error(f"{operation} failed with a database error: {e}")
            return OperationResult(success=False, error=f"Database error: {e}", error_type="persistence")
        except Exception as e:
            logger.exception(f"{operation} failed unexpectedly")
            return OperationResult(success=False, error=str(e), error_type="internal")

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def run_bulk_mapping(self) -> OperationResult:
        def _run() -> dict[str, Any]:
            job = BulkResolutionJob(
                store=self.store,
                target_source=self.target_source,
                candidate_source=self.candidate_source,
                engine=self.engine,
            )
            return job.run().to_dict()

        return self._execute("run_bulk_mapping", _run)

    def list_for_review(self, limit: Optional[int] = DEFAULT_REVIEW_LIMIT) -> OperationResult:
        def _list() -> list[dict[str, Any]]:
            workflow = self._review_workflow()
            items = workflow.list_for_review(limit=limit or DEFAULT_REVIEW_LIMIT)
            return [item.to_dict() for item in items]

        return self._execute("list_for_review", _list)

    def accept_mapping(self, payload: dict[str, Any], token: Optional[str]) -> OperationResult:
        def _accept() -> dict[str, Any]:
            mapping = self._review_workflow().accept(
                token,
                nflverse_id=_field(payload, "nflverse_id"),
                sleeper_id=_field(payload, "sleeper_id"),
                canonical_name=_field(payload, "canonical_name"),
                notes=_field(payload, "notes"),
            )
            return mapping.to_dict()

        return self._execute("accept_mapping", _accept)

    def reject_mapping(self, payload: dict[str, Any], token: Optional[str]) -> OperationResult:
        def _reject() -> dict[str, Any]:
            nflverse_id = _field(payload, "nflverse_id")
            self._review_workflow().reject(
                token,
                nflverse_id=nflverse_id,
                reason=_field(payload, "reason"),
            )
            return {"nflverse_id": nflverse_id, "status": "rejected"}

        return self._execute("reject_mapping", _reject)

    def get_report(
        self,
        report: Optional[str] = "summary",
        limit: Optional[int] = None,
    ) -> OperationResult:
        return self._execute(
            "get_report",
            lambda: AnalyticsReporter(self.store).report(report, limit),
        )

    def health_check(self) -> OperationResult:
        return self._execute("health_check", self.health_checker.run)

    def _review_workflow(self) -> ReviewWorkflow:
        return ReviewWorkflow(
            store=self.store,
            candidate_source=self.candidate_source,
            verifier=self.verifier,
        )
