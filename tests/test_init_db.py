"""
Tests for the mapping store.
"""

import sqlite3
from datetime import datetime, timezone

import pytest

from playermap.db.init_db import (
    PlayerMapping,
    PlayerMappingDB,
    UnmappedPlayer,
    to_sqlite_timestamp,
)
from playermap.errors import ConfigurationError, PersistenceError, ValidationError


def mapping(nflverse_id="00-1", sleeper_id="s1", method="exact", score=1.0, **kwargs):
    return PlayerMapping(
        nflverse_id=nflverse_id,
        sleeper_id=sleeper_id,
        canonical_name=kwargs.pop("canonical_name", "Some Player"),
        confidence_score=score,
        match_method=method,
        verified=kwargs.pop("verified", method in ("exact", "manual")),
        **kwargs,
    )


def unmapped(player_id="00-9", name="Nobody Known", **kwargs):
    return UnmappedPlayer(player_id=player_id, display_name=name, **kwargs)


# =============================================================================
# Initialization
# =============================================================================

class TestInitialize:

    def test_creates_tables(self, store):
        store.ensure_ready()
        assert store.get_schema_version() == "1"

    def test_idempotent(self, store):
        store.persist_run([mapping()], [])
        store.initialize()
        assert store.get_mapping("00-1") is not None

    def test_force_recreates(self, store):
        store.persist_run([mapping()], [])
        store.initialize(force=True)
        assert store.get_mapping("00-1") is None

    def test_ensure_ready_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            PlayerMappingDB(tmp_path / "missing.sqlite").ensure_ready()

    def test_ensure_ready_missing_tables(self, tmp_path):
        path = tmp_path / "empty.sqlite"
        sqlite3.connect(str(path)).close()
        with pytest.raises(ConfigurationError, match="missing tables"):
            PlayerMappingDB(path).ensure_ready()


# =============================================================================
# Write-side validation
# =============================================================================

class TestRecordValidation:

    def test_rejects_unknown_method(self):
        with pytest.raises(ValidationError):
            mapping(method="guess")

    @pytest.mark.parametrize("score", [-0.1, 1.01])
    def test_rejects_out_of_range_confidence(self, score):
        with pytest.raises(ValidationError):
            mapping(method="fuzzy", score=score)

    def test_rejects_missing_ids(self):
        with pytest.raises(ValidationError):
            mapping(sleeper_id="")

    def test_rejects_unknown_source(self):
        with pytest.raises(ValidationError):
            unmapped(source="espn")

    def test_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            unmapped(status="resolved")

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            mapping(method="guess")


# =============================================================================
# persist_run
# =============================================================================

class TestPersistRun:

    def test_upsert_does_not_duplicate(self, store):
        store.persist_run([mapping(score=1.0)], [])
        store.persist_run([mapping(sleeper_id="s2", method="fuzzy", score=0.95)], [])

        stats = store.check_integrity()["stats"]
        assert stats["mappings"] == 1
        row = store.get_mapping("00-1")
        assert row["sleeper_id"] == "s2"
        assert row["match_method"] == "fuzzy"

    def test_unmapped_attempts_increment(self, store):
        store.persist_run([], [unmapped()])
        store.persist_run([], [unmapped()])
        assert store.get_unmapped("00-9").attempts_count == 2

    def test_mapping_removes_queue_entry(self, store):
        store.persist_run([], [unmapped(player_id="00-1")])
        store.persist_run([mapping(nflverse_id="00-1")], [])

        assert store.get_unmapped("00-1") is None
        assert store.check_integrity()["checks"]["mapped_xor_unmapped"]

    def test_unmapped_removes_stale_automatic_mapping(self, store):
        store.persist_run([mapping(nflverse_id="00-1", method="fuzzy", score=0.95)], [])
        store.persist_run([], [unmapped(player_id="00-1")])

        assert store.get_mapping("00-1") is None
        assert store.get_unmapped("00-1") is not None

    def test_bulk_upsert_preserves_manual_mapping(self, store):
        store.accept_manual_mapping(mapping(method="manual", sleeper_id="human"))
        store.persist_run([mapping(sleeper_id="machine", method="fuzzy", score=0.93)], [])

        row = store.get_mapping("00-1")
        assert row["sleeper_id"] == "human"
        assert row["match_method"] == "manual"
        assert store.get_human_mapped_ids() == {"00-1"}

    def test_rejected_note_survives_new_attempt(self, store):
        store.persist_run([], [unmapped(notes="No match found")])
        store.reject_unmapped("00-9", "Rejected: retired")
        store.persist_run([], [unmapped(notes="No match found")])

        entry = store.get_unmapped("00-9")
        assert entry.status == "rejected"
        assert entry.notes == "Rejected: retired"
        assert entry.attempts_count == 2

    def test_failure_commits_nothing(self, store):
        with store.connection() as conn:
            conn.execute("DROP TABLE unmapped_players")
            conn.commit()

        with pytest.raises(PersistenceError):
            store.persist_run([mapping()], [unmapped()])

        assert store.get_mapping("00-1") is None


# =============================================================================
# Review and report queries
# =============================================================================

class TestQueries:

    def test_accept_returns_whether_entry_removed(self, store):
        store.upsert_unmapped([unmapped(player_id="00-1")])
        assert store.accept_manual_mapping(mapping(method="manual")) is True
        assert store.accept_manual_mapping(mapping(method="manual")) is False

    def test_reject_missing(self, store):
        assert store.reject_unmapped("nope", "Rejected: x") is False

    def test_review_queue_order(self, store):
        store.upsert_unmapped([
            unmapped(player_id="a", attempts_count=2),
            unmapped(player_id="b", attempts_count=7),
            unmapped(player_id="c", attempts_count=4),
        ])
        store.reject_unmapped("b", "Rejected: duplicate")

        queue = store.list_review_queue(limit=10)
        assert [e.player_id for e in queue] == ["c", "a", "b"]

    def test_top_unmapped_ignores_status(self, store):
        store.upsert_unmapped([
            unmapped(player_id="a", attempts_count=2),
            unmapped(player_id="b", attempts_count=7),
        ])
        store.reject_unmapped("b", "Rejected: duplicate")
        assert [r["player_id"] for r in store.top_unmapped(limit=1)] == ["b"]

    def test_low_confidence(self, store):
        store.persist_run([
            mapping(nflverse_id="1", method="fuzzy", score=0.93),
            mapping(nflverse_id="2", method="fuzzy", score=0.80, verified=False),
            mapping(nflverse_id="3", method="fuzzy", score=0.76, verified=False),
            mapping(nflverse_id="4", method="fuzzy", score=0.70, verified=True),
        ], [])
        rows = store.low_confidence_mappings(limit=10)
        assert [r["nflverse_id"] for r in rows] == ["3", "2"]

    def test_created_since(self, store):
        store.persist_run([mapping()], [])
        with store.connection() as conn:
            conn.execute("UPDATE player_id_mapping SET created_at = '2026-01-01 00:00:00'")
            conn.commit()

        assert store.count_mappings_created_since(datetime(2025, 12, 31)) == 1
        assert store.count_mappings_created_since(datetime(2026, 1, 2)) == 0

    def test_timestamp_format_is_utc(self):
        value = datetime(2026, 10, 17, 12, 30, tzinfo=timezone.utc)
        assert to_sqlite_timestamp(value) == "2026-10-17 12:30:00"

    def test_run_log(self, store):
        store.log_run("bulk-player-mapping", "success", 5, details={"exact_matches": 2})
        store.log_run("bulk-player-mapping", "error", 0, error_message="boom")

        last = store.get_last_run("bulk-player-mapping")
        assert last["status"] == "error"
        assert last["error_message"] == "boom"
        assert last["details"] is None


class TestIntegrity:

    def test_flags_player_in_both_tables(self, store):
        store.persist_run([mapping(nflverse_id="00-1")], [])
        with store.connection() as conn:
            conn.execute(
                "INSERT INTO unmapped_players (source, player_id, display_name) "
                "VALUES ('nflverse', '00-1', 'Some Player')"
            )
            conn.commit()

        results = store.check_integrity()
        assert results["valid"] is False
        assert results["checks"]["mapped_xor_unmapped"] is False

    def test_clean_store_is_valid(self, store):
        store.persist_run([mapping()], [unmapped()])
        assert store.check_integrity()["valid"] is True
