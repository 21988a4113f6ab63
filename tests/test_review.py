"""
Tests for the manual review workflow.
"""

import pytest

from conftest import VALID_TOKEN, FakeSource, rec
from playermap.db.init_db import UnmappedPlayer
from playermap.errors import AuthorizationError, EntryNotFoundError, ValidationError
from playermap.identity.bulk_mapping import BulkResolutionJob
from playermap.identity.review import ReviewWorkflow


@pytest.fixture
def candidates(sleeper_records):
    return FakeSource(sleeper_records, name="sleeper")


@pytest.fixture
def workflow(store, candidates, verifier):
    return ReviewWorkflow(store=store, candidate_source=candidates, verifier=verifier)


@pytest.fixture
def populated(store, nflverse_records, sleeper_records):
    """Store after one bulk run: John Smith and Zeke Unknownperson queued."""
    BulkResolutionJob(
        store=store,
        target_source=FakeSource(nflverse_records),
        candidate_source=FakeSource(sleeper_records),
    ).run()
    return store


# =============================================================================
# Listing
# =============================================================================

class TestListForReview:

    def test_ordered_by_attempts(self, store, workflow):
        store.upsert_unmapped([
            UnmappedPlayer(player_id="a", display_name="Alpha One", attempts_count=1),
            UnmappedPlayer(player_id="b", display_name="Bravo Two", attempts_count=9),
            UnmappedPlayer(player_id="c", display_name="Charlie Three", attempts_count=3),
        ])
        assert [i.player_id for i in workflow.list_for_review()] == ["b", "c", "a"]

    def test_rejected_entries_sink(self, store, workflow):
        store.upsert_unmapped([
            UnmappedPlayer(player_id="a", display_name="Alpha One", attempts_count=1),
            UnmappedPlayer(player_id="b", display_name="Bravo Two", attempts_count=9),
        ])
        workflow.reject(VALID_TOKEN, "b", "not a real player")

        items = workflow.list_for_review()
        assert [i.player_id for i in items] == ["a", "b"]
        assert items[1].status == "rejected"

    def test_limit(self, store, workflow):
        store.upsert_unmapped([
            UnmappedPlayer(player_id=str(i), display_name=f"Player {i}") for i in range(5)
        ])
        assert len(workflow.list_for_review(limit=2)) == 2

    def test_invalid_limit(self, workflow):
        with pytest.raises(ValidationError):
            workflow.list_for_review(limit=0)

    def test_suggestions(self, populated, workflow):
        items = {i.player_id: i for i in workflow.list_for_review()}

        smith = items["00-0099001"]
        assert smith.suggestions[0].candidate_id == "7001"
        assert smith.suggestions[0].confidence == "medium"

        suggestion = smith.to_dict()["suggestions"][0]
        assert suggestion == {
            "candidate_id": "7001",
            "candidate_name": "Kenny Smith",
            "score": round(10 / 12, 4),
            "confidence": "medium",
        }

        assert items["00-0099002"].suggestions == []

    def test_suggestions_capped(self, store, verifier):
        many = FakeSource([rec(str(i), "John Smith", "RB") for i in range(9)])
        store.upsert_unmapped([UnmappedPlayer(player_id="x", display_name="John Smith")])
        workflow = ReviewWorkflow(store, many, verifier, max_suggestions=3)
        assert len(workflow.list_for_review()[0].suggestions) == 3

    def test_empty_queue_skips_fetch(self, workflow, candidates):
        assert workflow.list_for_review() == []
        assert candidates.calls == 0


# =============================================================================
# Accept
# =============================================================================

class TestAccept:

    def test_creates_manual_mapping(self, populated, workflow):
        mapping = workflow.accept(VALID_TOKEN, "00-0099001", "7001", "John Smith")

        assert mapping.match_method == "manual"
        assert mapping.confidence_score == 1.0
        assert mapping.verified is True
        assert mapping.position == "RB"

        row = populated.get_mapping("00-0099001")
        assert row["sleeper_id"] == "7001"
        assert row["verified"] == 1
        assert populated.get_unmapped("00-0099001") is None

    def test_idempotent(self, populated, workflow):
        workflow.accept(VALID_TOKEN, "00-0099001", "7001", "John Smith")
        again = workflow.accept(VALID_TOKEN, "00-0099001", "7001", "John Smith")

        assert again.team == "NYJ"
        assert populated.check_integrity()["stats"]["mappings"] == 4
        assert populated.check_integrity()["valid"] is True

    def test_bearer_prefix_accepted(self, populated, workflow):
        workflow.accept(f"Bearer {VALID_TOKEN}", "00-0099001", "7001", "John Smith")
        assert populated.get_mapping("00-0099001") is not None

    @pytest.mark.parametrize("token", [None, "", "wrong-token"])
    def test_bad_token_writes_nothing(self, populated, workflow, token):
        with pytest.raises(AuthorizationError):
            workflow.accept(token, "00-0099001", "7001", "John Smith")

        assert populated.get_mapping("00-0099001") is None
        assert populated.get_unmapped("00-0099001") is not None

    def test_missing_sleeper_id(self, populated, workflow):
        with pytest.raises(ValidationError):
            workflow.accept(VALID_TOKEN, "00-0099001", "", "John Smith")

    def test_token_checked_before_payload(self, workflow):
        with pytest.raises(AuthorizationError):
            workflow.accept("nope", "", "", "")

    def test_later_bulk_run_keeps_manual_mapping(
        self, populated, workflow, nflverse_records, sleeper_records
    ):
        workflow.accept(VALID_TOKEN, "00-0099002", "7002", "Zeke Unknownperson")

        result = BulkResolutionJob(
            store=populated,
            target_source=FakeSource(nflverse_records),
            candidate_source=FakeSource(sleeper_records),
        ).run()

        assert result.skipped_verified == 1
        assert populated.get_mapping("00-0099002")["sleeper_id"] == "7002"
        assert populated.get_unmapped("00-0099002") is None


# =============================================================================
# Reject
# =============================================================================

class TestReject:

    def test_keeps_entry_with_note(self, populated, workflow):
        workflow.reject(VALID_TOKEN, "00-0099002", "  Practice squad only ")

        entry = populated.get_unmapped("00-0099002")
        assert entry.status == "rejected"
        assert entry.notes == "Rejected: Practice squad only"
        assert entry.attempts_count == 1

    def test_missing_entry(self, workflow):
        with pytest.raises(EntryNotFoundError):
            workflow.reject(VALID_TOKEN, "00-0000000", "duplicate")

    def test_reason_required(self, populated, workflow):
        with pytest.raises(ValidationError):
            workflow.reject(VALID_TOKEN, "00-0099002", "   ")

    def test_bad_token_writes_nothing(self, populated, workflow):
        with pytest.raises(AuthorizationError):
            workflow.reject("wrong-token", "00-0099002", "duplicate")
        assert populated.get_unmapped("00-0099002").status == "pending"
