#!/usr/bin/env python3
"""
Player ID Mapping Database Initialization and Management

This module owns the durable state of the mapping subsystem:

- Database initialization from schema.sql
- Write-side validation of mapping and unmapped records
- Batched, upsert-only persistence for bulk runs
- Manual review writes (accept / reject)
- Read queries used by the review queue and analytics
- Run logging and integrity checks

Usage:
    # Initialize a new database
    python -m playermap.db.init_db --init

    # Check database integrity
    python -m playermap.db.init_db --check

    # As a module
    from playermap.db.init_db import PlayerMappingDB
    db = PlayerMappingDB("db/player_mapping.sqlite")
    db.initialize()
"""

from __future__ import annotations

import argparse
import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Iterable, Literal, Optional

from playermap.config import DEFAULT_DB_PATH
from playermap.errors import ConfigurationError, PersistenceError, ValidationError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Path constants
SCRIPT_DIR = Path(__file__).parent
SCHEMA_PATH = SCRIPT_DIR / "schema.sql"

REQUIRED_TABLES = ("player_id_mapping", "unmapped_players", "mapping_runs")

# Type definitions
MatchMethodType = Literal["exact", "fuzzy", "manual", "community"]
UnmappedSourceType = Literal["nflverse", "sleeper"]
ReviewStatusType = Literal["pending", "rejected"]

MATCH_METHODS: tuple[str, ...] = ("exact", "fuzzy", "manual", "community")
UNMAPPED_SOURCES: tuple[str, ...] = ("nflverse", "sleeper")
REVIEW_STATUSES: tuple[str, ...] = ("pending", "rejected")

# Mappings a bulk run must never overwrite
HUMAN_METHODS: tuple[str, ...] = ("manual", "community")

SQLITE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class PlayerMapping:
    """A resolved nflverse -> Sleeper identity link."""
    nflverse_id: str
    sleeper_id: str
    canonical_name: str
    confidence_score: float
    match_method: MatchMethodType
    verified: bool = False
    position: Optional[str] = None
    team: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.nflverse_id or not self.sleeper_id:
            raise ValidationError("Mapping requires both nflverse_id and sleeper_id")
        if not self.canonical_name:
            raise ValidationError(f"Mapping {self.nflverse_id} has no canonical_name")
        if self.match_method not in MATCH_METHODS:
            raise ValidationError(f"Invalid match_method: {self.match_method!r}")
        if not 0.0 <= float(self.confidence_score) <= 1.0:
            raise ValidationError(
                f"confidence_score out of range [0, 1]: {self.confidence_score}"
            )

    def as_row(self) -> tuple:
        return (
            self.nflverse_id, self.sleeper_id, self.canonical_name,
            float(self.confidence_score), self.match_method, int(self.verified),
            self.position, self.team, self.notes,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class UnmappedPlayer:
    """A player the automatic pass could not map with enough confidence."""
    player_id: str
    display_name: str
    source: UnmappedSourceType = "nflverse"
    position: Optional[str] = None
    team: Optional[str] = None
    attempts_count: int = 1
    status: ReviewStatusType = "pending"
    notes: Optional[str] = None
    id: Optional[int] = None
    last_attempt: Optional[str] = None
    created_at: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.player_id:
            raise ValidationError("Unmapped entry requires a player_id")
        if self.source not in UNMAPPED_SOURCES:
            raise ValidationError(f"Invalid source: {self.source!r}")
        if self.status not in REVIEW_STATUSES:
            raise ValidationError(f"Invalid review status: {self.status!r}")

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "UnmappedPlayer":
        return cls(
            id=row["id"],
            source=row["source"],
            player_id=row["player_id"],
            display_name=row["display_name"],
            position=row["position"],
            team=row["team"],
            attempts_count=row["attempts_count"],
            status=row["status"],
            notes=row["notes"],
            last_attempt=row["last_attempt"],
            created_at=row["created_at"],
        )

    def as_row(self) -> tuple:
        return (
            self.source, self.player_id, self.display_name, self.position,
            self.team, self.notes, self.attempts_count, self.status,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_UPSERT_MAPPING_SQL = """
    INSERT INTO player_id_mapping (
        nflverse_id, sleeper_id, canonical_name, confidence_score,
        match_method, verified, position, team, notes
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (nflverse_id) DO UPDATE SET
        sleeper_id = excluded.sleeper_id,
        canonical_name = excluded.canonical_name,
        confidence_score = excluded.confidence_score,
        match_method = excluded.match_method,
        verified = excluded.verified,
        position = excluded.position,
        team = excluded.team,
        notes = excluded.notes,
        updated_at = CURRENT_TIMESTAMP
"""

_PRESERVE_HUMAN_SQL = (
    " WHERE player_id_mapping.match_method NOT IN ("
    + ", ".join(f"'{m}'" for m in HUMAN_METHODS)
    + ")"
)

# Repeated attempts bump the counter; a rejection note is kept until a
# reviewer acts on the entry again.
_UPSERT_UNMAPPED_SQL = """
    INSERT INTO unmapped_players (
        source, player_id, display_name, position, team, notes,
        attempts_count, status
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (source, player_id) DO UPDATE SET
        display_name = excluded.display_name,
        position = excluded.position,
        team = excluded.team,
        notes = CASE
            WHEN unmapped_players.status = 'rejected' THEN unmapped_players.notes
            ELSE excluded.notes
        END,
        attempts_count = unmapped_players.attempts_count + 1,
        last_attempt = CURRENT_TIMESTAMP
"""


def to_sqlite_timestamp(value: datetime) -> str:
    """Format a datetime the way CURRENT_TIMESTAMP stores it (UTC)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(SQLITE_TIMESTAMP_FORMAT)


class PlayerMappingDB:
    """
    Manager for the player ID mapping database.

    Provides methods for:
    - Database initialization and readiness checks
    - Batched bulk-run persistence
    - Manual review writes
    - Review queue and analytics queries
    - Run logging
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections with proper cleanup."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self, conn: sqlite3.Connection) -> Generator[sqlite3.Cursor, None, None]:
        """Context manager for database transactions."""
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def initialize(self, force: bool = False) -> None:
        """
        Initialize the database with the schema.

        The schema is idempotent, so running this against an existing
        database only adds missing tables.

        Args:
            force: If True, delete the existing database file first.
                   Use with caution - this destroys all data!
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        if force and self.db_path.exists():
            logger.warning(f"Forcing reinitialization - removing {self.db_path}")
            self.db_path.unlink()
        elif self.db_path.exists():
            logger.info(f"Database already exists at {self.db_path}; applying schema")

        if not SCHEMA_PATH.exists():
            raise FileNotFoundError(f"Schema file not found: {SCHEMA_PATH}")

        schema_sql = SCHEMA_PATH.read_text()

        with self.connection() as conn:
            conn.executescript(schema_sql)
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            )
            tables = [row[0] for row in cursor.fetchall()]
            logger.info(f"Schema ready: {', '.join(tables)}")

    def ensure_ready(self) -> None:
        """
        Verify the database exists and carries the mapping tables.

        Raises:
            ConfigurationError: if the store is missing or not initialized
        """
        if not self.db_path.exists():
            raise ConfigurationError(
                f"Mapping database not found: {self.db_path}. "
                "Run: python -m playermap.db.init_db --init"
            )
        try:
            with self.connection() as conn:
                cursor = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table'"
                )
                tables = {row[0] for row in cursor.fetchall()}
        except sqlite3.Error as e:
            raise ConfigurationError(f"Cannot open mapping database {self.db_path}: {e}") from e

        missing = [t for t in REQUIRED_TABLES if t not in tables]
        if missing:
            raise ConfigurationError(
                f"Mapping database {self.db_path} is missing tables: {', '.join(missing)}"
            )

    def get_schema_version(self) -> Optional[str]:
        """Get the current schema version from the database."""
        try:
            with self.connection() as conn:
                cursor = conn.execute(
                    "SELECT value FROM schema_meta WHERE key = 'schema_version'"
                )
                row = cursor.fetchone()
                return row[0] if row else None
        except sqlite3.OperationalError:
            return None

    def check_integrity(self) -> dict[str, Any]:
        """
        Run integrity checks on the database.

        Returns:
            Dictionary with check results
        """
        results: dict[str, Any] = {
            "valid": True,
            "checks": {},
            "errors": []
        }

        try:
            with self.connection() as conn:
                cursor = conn.execute("PRAGMA integrity_check")
                integrity_result = cursor.fetchone()[0]
                results["checks"]["sqlite_integrity"] = integrity_result == "ok"
                if integrity_result != "ok":
                    results["errors"].append(f"SQLite integrity: {integrity_result}")
                    results["valid"] = False

                # A player must not be both mapped and queued for review
                cursor = conn.execute("""
                    SELECT COUNT(*) FROM unmapped_players u
                    JOIN player_id_mapping m ON m.nflverse_id = u.player_id
                    WHERE u.source = 'nflverse'
                """)
                overlap = cursor.fetchone()[0]
                results["checks"]["mapped_xor_unmapped"] = overlap == 0
                if overlap > 0:
                    results["errors"].append(f"Players both mapped and unmapped: {overlap}")
                    results["valid"] = False

                placeholders = ", ".join("?" for _ in MATCH_METHODS)
                cursor = conn.execute(
                    f"SELECT COUNT(*) FROM player_id_mapping "
                    f"WHERE match_method NOT IN ({placeholders})",
                    MATCH_METHODS,
                )
                invalid_methods = cursor.fetchone()[0]
                results["checks"]["valid_match_methods"] = invalid_methods == 0
                if invalid_methods > 0:
                    results["errors"].append(f"Mappings with unknown match_method: {invalid_methods}")
                    results["valid"] = False

                cursor = conn.execute("SELECT COUNT(*) FROM player_id_mapping")
                results["stats"] = {"mappings": cursor.fetchone()[0]}

                cursor = conn.execute("SELECT COUNT(*) FROM unmapped_players")
                results["stats"]["unmapped"] = cursor.fetchone()[0]

                cursor = conn.execute(
                    "SELECT match_method, COUNT(*) FROM player_id_mapping GROUP BY match_method"
                )
                results["stats"]["mappings_by_method"] = dict(cursor.fetchall())

        except sqlite3.Error as e:
            results["valid"] = False
            results["errors"].append(f"Check failed: {e}")

        return results

    # -------------------------------------------------------------------------
    # Bulk Run Persistence
    # -------------------------------------------------------------------------

    def persist_run(
        self,
        mappings: Iterable[PlayerMapping],
        unmapped: Iterable[UnmappedPlayer],
    ) -> None:
        """
        Write the outcome of a bulk run in a single transaction.

        Mapped players lose any queued review entry; players that fell back
        to the queue lose any automatic mapping left from an earlier run.
        Manual and community mappings are never overwritten here.

        Raises:
            PersistenceError: on any database error (nothing is committed)
        """
        mappings = list(mappings)
        unmapped = list(unmapped)

        try:
            with self.connection() as conn, self.transaction(conn) as cursor:
                if mappings:
                    cursor.executemany(
                        _UPSERT_MAPPING_SQL + _PRESERVE_HUMAN_SQL,
                        [m.as_row() for m in mappings],
                    )
                    cursor.executemany(
                        "DELETE FROM unmapped_players WHERE source = 'nflverse' AND player_id = ?",
                        [(m.nflverse_id,) for m in mappings],
                    )

                if unmapped:
                    cursor.executemany(
                        "DELETE FROM player_id_mapping "
                        "WHERE nflverse_id = ? AND match_method IN ('exact', 'fuzzy')",
                        [(u.player_id,) for u in unmapped if u.source == "nflverse"],
                    )
                    cursor.executemany(
                        _UPSERT_UNMAPPED_SQL,
                        [u.as_row() for u in unmapped],
                    )
        except sqlite3.Error as e:
            raise PersistenceError(f"Batch write failed: {e}") from e

        logger.debug(
            f"Persisted {len(mappings)} mappings and {len(unmapped)} unmapped entries"
        )

    def upsert_unmapped(self, entries: Iterable[UnmappedPlayer]) -> None:
        """Insert or update review queue entries (bumps attempts on conflict)."""
        try:
            with self.connection() as conn, self.transaction(conn) as cursor:
                cursor.executemany(_UPSERT_UNMAPPED_SQL, [e.as_row() for e in entries])
        except sqlite3.Error as e:
            raise PersistenceError(f"Unmapped upsert failed: {e}") from e

    def get_human_mapped_ids(self) -> set[str]:
        """nflverse ids whose mapping came from a reviewer."""
        placeholders = ", ".join("?" for _ in HUMAN_METHODS)
        with self.connection() as conn:
            cursor = conn.execute(
                f"SELECT nflverse_id FROM player_id_mapping "
                f"WHERE match_method IN ({placeholders})",
                HUMAN_METHODS,
            )
            return {row[0] for row in cursor.fetchall()}

    # -------------------------------------------------------------------------
    # Manual Review Operations
    # -------------------------------------------------------------------------

    def accept_manual_mapping(
        self,
        mapping: PlayerMapping,
        source: UnmappedSourceType = "nflverse",
    ) -> bool:
        """
        Store a reviewer-confirmed mapping and drop its review entry.

        Returns:
            True if a review entry was removed, False if none existed
        """
        try:
            with self.connection() as conn, self.transaction(conn) as cursor:
                cursor.execute(_UPSERT_MAPPING_SQL, mapping.as_row())
                cursor.execute(
                    "DELETE FROM unmapped_players WHERE source = ? AND player_id = ?",
                    (source, mapping.nflverse_id),
                )
                removed = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Manual mapping write failed: {e}") from e
        return removed

    def reject_unmapped(
        self,
        player_id: str,
        notes: str,
        source: UnmappedSourceType = "nflverse",
    ) -> bool:
        """
        Mark a review entry as rejected without deleting it.

        Returns:
            True if an entry was updated
        """
        try:
            with self.connection() as conn, self.transaction(conn) as cursor:
                cursor.execute("""
                    UPDATE unmapped_players
                    SET status = 'rejected', notes = ?
                    WHERE source = ? AND player_id = ?
                """, (notes, source, player_id))
                updated = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Reject write failed: {e}") from e
        return updated

    def get_unmapped(
        self,
        player_id: str,
        source: UnmappedSourceType = "nflverse",
    ) -> Optional[UnmappedPlayer]:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM unmapped_players WHERE source = ? AND player_id = ?",
                (source, player_id),
            )
            row = cursor.fetchone()
        return UnmappedPlayer.from_row(row) if row else None

    def get_mapping(self, nflverse_id: str) -> Optional[dict[str, Any]]:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM player_id_mapping WHERE nflverse_id = ?",
                (nflverse_id,),
            )
            row = cursor.fetchone()
        return dict(row) if row else None

    def list_review_queue(
        self,
        limit: int = 50,
        source: Optional[UnmappedSourceType] = None,
    ) -> list[UnmappedPlayer]:
        """
        Review queue: pending entries before rejected ones, then by
        attempts_count descending.
        """
        query = "SELECT * FROM unmapped_players"
        params: list[Any] = []

        if source:
            query += " WHERE source = ?"
            params.append(source)

        query += """
            ORDER BY CASE status WHEN 'pending' THEN 0 ELSE 1 END,
                     attempts_count DESC, id
            LIMIT ?
        """
        params.append(limit)

        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [UnmappedPlayer.from_row(row) for row in rows]

    # -------------------------------------------------------------------------
    # Report Queries
    # -------------------------------------------------------------------------

    def top_unmapped(self, limit: int = 20) -> list[dict[str, Any]]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM unmapped_players ORDER BY attempts_count DESC, id LIMIT ?",
                (limit,),
            ).fetchall()
        return [dict(row) for row in rows]

    def low_confidence_mappings(
        self,
        limit: int = 20,
        threshold: float = 0.85,
    ) -> list[dict[str, Any]]:
        """Unverified mappings under threshold, worst first."""
        with self.connection() as conn:
            rows = conn.execute("""
                SELECT * FROM player_id_mapping
                WHERE confidence_score < ? AND verified = 0
                ORDER BY confidence_score ASC, id
                LIMIT ?
            """, (threshold, limit)).fetchall()
        return [dict(row) for row in rows]

    def iter_mapping_stats(self) -> list[sqlite3.Row]:
        """(match_method, confidence_score, verified) for every mapping."""
        with self.connection() as conn:
            return conn.execute(
                "SELECT id, match_method, confidence_score, verified FROM player_id_mapping"
            ).fetchall()

    def count_unmapped_by_source(self) -> dict[str, int]:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT source, COUNT(*) FROM unmapped_players GROUP BY source"
            )
            return {row[0]: row[1] for row in cursor.fetchall()}

    def count_mappings_created_since(self, since: datetime) -> int:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM player_id_mapping WHERE created_at >= ?",
                (to_sqlite_timestamp(since),),
            )
            return cursor.fetchone()[0]

    # -------------------------------------------------------------------------
    # Run Log
    # -------------------------------------------------------------------------

    def log_run(
        self,
        run_type: str,
        status: Literal["success", "error"],
        records_processed: int = 0,
        error_message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Record the outcome of a job run."""
        details_json = json.dumps(details) if details else None
        with self.connection() as conn:
            conn.execute("""
                INSERT INTO mapping_runs (
                    run_type, status, records_processed, error_message, details_json
                ) VALUES (?, ?, ?, ?, ?)
            """, (run_type, status, records_processed, error_message, details_json))
            conn.commit()

    def get_last_run(self, run_type: str) -> Optional[dict[str, Any]]:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM mapping_runs WHERE run_type = ? ORDER BY id DESC LIMIT 1",
                (run_type,),
            ).fetchone()
        if row is None:
            return None
        run = dict(row)
        run["details"] = json.loads(run.pop("details_json") or "null")
        return run


def main() -> None:
    """Main entry point for CLI usage."""
    parser = argparse.ArgumentParser(
        description="Player ID Mapping Database Management"
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=DEFAULT_DB_PATH,
        help=f"Database path (default: {DEFAULT_DB_PATH})"
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Initialize the database with schema"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Force reinitialization (WARNING: destroys data)"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Run integrity checks"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    db = PlayerMappingDB(args.db)

    if args.init:
        db.initialize(force=args.force)

    if args.check:
        results = db.check_integrity()
        print(f"\nIntegrity Check Results:")
        print(f"  Valid: {results['valid']}")
        print(f"\nChecks:")
        for check, passed in results.get("checks", {}).items():
            status = "PASS" if passed else "FAIL"
            print(f"  {check}: {status}")

        if results.get("errors"):
            print(f"\nErrors:")
            for error in results["errors"]:
                print(f"  - {error}")

        if results.get("stats"):
            print(f"\nStatistics:")
            for stat, value in results["stats"].items():
                print(f"  {stat}: {value}")


if __name__ == "__main__":
    main()
