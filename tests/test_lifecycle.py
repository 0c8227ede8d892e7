"""
Tests for the recovery token record lifecycle.
"""
import pytest

from delegated_recovery.core.db.tables.recoverytoken import TokenStatus
from delegated_recovery.core.errors import DuplicateTokenError, InvalidTransitionError

AUDIENCE = "https://provider.example.com"


def provision(lifecycle, token_id, username="alice"):
    return lifecycle.provision(
        username=username,
        audience=AUDIENCE,
        token_id=token_id,
        token_hash="00" * 32,
    )


class TestProvision:
    """Tests for creating records."""

    def test_provision_creates_provisional_record(self, lifecycle):
        """A new record starts out provisional and is retrievable by ID."""
        record = provision(lifecycle, "a1b2")

        assert record.status == TokenStatus.PROVISIONAL
        stored = lifecycle.get("a1b2")
        assert stored is not None
        assert stored.username == "alice"
        assert stored.audience == AUDIENCE
        assert stored.status == TokenStatus.PROVISIONAL

    def test_provision_refuses_reused_id(self, lifecycle):
        """Token IDs are never reused."""
        provision(lifecycle, "a1b2")

        with pytest.raises(DuplicateTokenError):
            provision(lifecycle, "a1b2", username="bob")

        assert lifecycle.get("a1b2").username == "alice"

    def test_provisional_record_is_not_confirmed_for_user(self, lifecycle):
        """Provisional tokens do not count as saved."""
        provision(lifecycle, "a1b2")

        assert lifecycle.find_confirmed_for_user("alice") is None


class TestConfirm:
    """Tests for confirming records."""

    def test_confirm_provisional(self, lifecycle):
        """Confirming moves a provisional record to confirmed."""
        provision(lifecycle, "a1b2")

        record = lifecycle.confirm("a1b2")

        assert record.status == TokenStatus.CONFIRMED
        assert record.updated_at is not None
        assert lifecycle.find_confirmed_for_user("alice").id == "a1b2"

    def test_confirm_unknown_returns_none(self, lifecycle):
        """Unknown IDs are reported, not raised."""
        assert lifecycle.confirm("deadbeef") is None

    def test_confirm_twice_is_noop(self, lifecycle):
        """Confirming an already confirmed record keeps it confirmed."""
        provision(lifecycle, "a1b2")
        lifecycle.confirm("a1b2")

        record = lifecycle.confirm("a1b2")

        assert record.status == TokenStatus.CONFIRMED

    def test_confirm_invalid_raises(self, lifecycle):
        """An invalidated token cannot be brought back."""
        provision(lifecycle, "a1b2")
        lifecycle.invalidate("a1b2")

        with pytest.raises(InvalidTransitionError):
            lifecycle.confirm("a1b2")

        assert lifecycle.get("a1b2").status == TokenStatus.INVALID

    def test_confirm_supersedes_other_confirmed_token(self, lifecycle):
        """Two confirmed tokens never coexist for one user."""
        provision(lifecycle, "a1b2")
        provision(lifecycle, "c3d4")
        lifecycle.confirm("a1b2")

        lifecycle.confirm("c3d4")

        assert lifecycle.get("a1b2").status == TokenStatus.INVALID
        assert lifecycle.get("c3d4").status == TokenStatus.CONFIRMED
        assert lifecycle.find_confirmed_for_user("alice").id == "c3d4"

    def test_confirm_leaves_other_users_alone(self, lifecycle):
        """Confirmation only retires tokens of the same user."""
        provision(lifecycle, "a1b2", username="alice")
        provision(lifecycle, "c3d4", username="bob")
        lifecycle.confirm("a1b2")

        lifecycle.confirm("c3d4")

        assert lifecycle.get("a1b2").status == TokenStatus.CONFIRMED
        assert lifecycle.find_confirmed_for_user("alice").id == "a1b2"
        assert lifecycle.find_confirmed_for_user("bob").id == "c3d4"


class TestInvalidate:
    """Tests for invalidating records."""

    def test_invalidate_confirmed(self, lifecycle):
        """A confirmed record can be invalidated."""
        provision(lifecycle, "a1b2")
        lifecycle.confirm("a1b2")

        record = lifecycle.invalidate("a1b2")

        assert record.status == TokenStatus.INVALID
        assert lifecycle.find_confirmed_for_user("alice") is None

    def test_invalidate_provisional(self, lifecycle):
        """Invalidation applies to records in any status."""
        provision(lifecycle, "a1b2")

        assert lifecycle.invalidate("a1b2").status == TokenStatus.INVALID

    def test_invalidate_is_idempotent(self, lifecycle):
        """Invalidating twice succeeds both times."""
        provision(lifecycle, "a1b2")
        lifecycle.confirm("a1b2")

        first = lifecycle.invalidate("a1b2")
        second = lifecycle.invalidate("a1b2")

        assert first.status == TokenStatus.INVALID
        assert second.status == TokenStatus.INVALID
        assert lifecycle.get("a1b2").status == TokenStatus.INVALID

    def test_invalidate_unknown_returns_none(self, lifecycle):
        """Unknown IDs are reported, not raised."""
        assert lifecycle.invalidate("deadbeef") is None


class TestReject:
    """Tests for rejecting provisional records."""

    def test_reject_removes_provisional(self, lifecycle):
        """A declined token leaves no trace."""
        provision(lifecycle, "a1b2")

        assert lifecycle.reject("a1b2") is True
        assert lifecycle.get("a1b2") is None

    def test_reject_keeps_confirmed(self, lifecycle):
        """A late failure report cannot erase a saved token."""
        provision(lifecycle, "a1b2")
        lifecycle.confirm("a1b2")

        assert lifecycle.reject("a1b2") is False
        assert lifecycle.get("a1b2").status == TokenStatus.CONFIRMED

    def test_reject_unknown(self, lifecycle):
        """Rejecting an unknown ID is a no-op."""
        assert lifecycle.reject("deadbeef") is False


class TestRecordStoreOrdering:
    """Tests for store listing order."""

    def test_list_newest_first(self, store, lifecycle):
        """Records for a user are listed newest first."""
        provision(lifecycle, "0001")
        provision(lifecycle, "0002")
        provision(lifecycle, "0003", username="bob")

        records = store.list_by_username_and_status("alice", TokenStatus.PROVISIONAL)

        assert [r.id for r in records] == ["0002", "0001"]

    def test_delete_reports_missing(self, store):
        """Deleting an unknown ID reports nothing was removed."""
        assert store.delete_by_id("deadbeef") is False
