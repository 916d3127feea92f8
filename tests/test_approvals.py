"""
Tests for rollgate.approvals module.

Tests the approval state machine including:
- Create/get/update/delete and their errors
- Voting, voter de-duplication and sticky rejection
- Resubmission of the triggering event on quorum
- Archiving decided records
- Expiry sweeps and the background expiry service
- State-file storage with expired and corrupted entries
- Concurrent voting through one manager
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import threading
import time

import pytest

from rollgate.approvals import Approval, ApprovalManager, ApprovalStatus, ExpiryService
from rollgate.cache import FileCache, load_state, save_state
from rollgate.exceptions import AlreadyExistsError, NotFoundError
from rollgate.logging import DefaultLogger

NOW = datetime(2023, 5, 15, 14, 30, tzinfo=UTC)
PROVIDER = "kubernetes"
IDENT = "default/web:1.3.0"


@pytest.fixture
def manager(memory_cache, sink, clock) -> ApprovalManager:
    return ApprovalManager(memory_cache, sink=sink, clock=clock)


@pytest.fixture
def pending(manager, make_event) -> Approval:
    """Store a record that needs two votes."""
    return manager.create(
        Approval(
            provider=PROVIDER,
            identifier=IDENT,
            event=make_event(),
            current_version="1.2.0",
            new_version="1.3.0",
            votes_required=2,
        )
    )


class TestCrud:
    """Tests for storing and loading records."""

    def test_create_sets_timestamps(self, pending):
        assert pending.created_at == NOW
        assert pending.updated_at == NOW

    def test_get_returns_stored_record(self, manager, pending):
        stored = manager.get(PROVIDER, IDENT)

        assert stored == pending
        assert stored is not pending

    def test_create_twice_raises(self, manager, pending):
        with pytest.raises(AlreadyExistsError):
            manager.create(Approval(provider=PROVIDER, identifier=IDENT))

    def test_get_missing_raises(self, manager):
        with pytest.raises(NotFoundError):
            manager.get(PROVIDER, "missing")

    def test_update_missing_raises(self, manager):
        with pytest.raises(NotFoundError):
            manager.update(Approval(provider=PROVIDER, identifier="missing"))

    def test_update_keeps_created_at(self, manager, pending, clock):
        """Test that update refreshes updated_at only."""
        clock.advance(timedelta(minutes=5))
        record = manager.get(PROVIDER, IDENT)
        record.created_at = NOW + timedelta(days=1)
        record.message = "changed"

        manager.update(record)
        stored = manager.get(PROVIDER, IDENT)

        assert stored.created_at == NOW
        assert stored.updated_at == NOW + timedelta(minutes=5)
        assert stored.message == "changed"

    def test_delete_is_idempotent(self, manager, pending):
        manager.delete(PROVIDER, IDENT)
        manager.delete(PROVIDER, IDENT)

        with pytest.raises(NotFoundError):
            manager.get(PROVIDER, IDENT)

    def test_list_by_provider(self, manager, pending):
        manager.create(Approval(provider="helm", identifier="rel/app:2.0.0"))

        assert [a.identifier for a in manager.list(PROVIDER)] == [IDENT]
        assert [a.provider for a in manager.list()] == ["helm", PROVIDER]

    def test_list_skips_undecodable_records(self, memory_cache, clock, capsys):
        """Test that a corrupt record is logged and skipped."""
        manager = ApprovalManager(memory_cache, clock=clock, logger=DefaultLogger())
        manager.create(Approval(provider=PROVIDER, identifier=IDENT))
        memory_cache.put(manager.key(PROVIDER, "broken"), b"not json")

        assert [a.identifier for a in manager.list()] == [IDENT]
        assert "skipping" in capsys.readouterr().err

    def test_record_expires_with_cache_ttl(self, manager, pending, clock):
        clock.advance(timedelta(hours=24))

        with pytest.raises(NotFoundError):
            manager.get(PROVIDER, IDENT)

    def test_custom_prefix(self, memory_cache, clock):
        manager = ApprovalManager(memory_cache, prefix="gate/approvals/", clock=clock)
        manager.create(Approval(provider=PROVIDER, identifier=IDENT))

        assert list(memory_cache.list()) == [f"gate/approvals/{PROVIDER}/{IDENT}"]


class TestVoting:
    """Tests for approve and reject."""

    def test_quorum_resubmits_once(self, manager, pending, sink):
        """Test that the event is resubmitted exactly when quorum is reached."""
        first = manager.approve(PROVIDER, IDENT, voter="alice")
        assert first.status() == ApprovalStatus.PENDING
        assert sink.events == []

        second = manager.approve(PROVIDER, IDENT, voter="bob")
        assert second.status() == ApprovalStatus.APPROVED
        assert len(sink.events) == 1
        assert sink.events[0].repository.tag == "1.3.0"

    def test_resubmitted_event_is_a_copy(self, manager, pending, sink):
        manager.approve(PROVIDER, IDENT)
        manager.approve(PROVIDER, IDENT)

        sink.events[0].repository.tag = "mutated"

        assert manager.get(PROVIDER, IDENT).event.repository.tag == "1.3.0"

    def test_same_voter_counts_once(self, manager, pending):
        manager.approve(PROVIDER, IDENT, voter="alice")
        again = manager.approve(PROVIDER, IDENT, voter="alice")

        assert again.votes_received == 1
        assert again.voters == ["alice"]
        assert manager.get(PROVIDER, IDENT).votes_received == 1

    def test_anonymous_votes_all_count(self, manager, pending):
        manager.approve(PROVIDER, IDENT)
        manager.approve(PROVIDER, IDENT)
        extra = manager.approve(PROVIDER, IDENT)

        assert extra.votes_received == 3
        assert extra.voters == []

    def test_votes_past_quorum_resubmit_again(self, manager, pending, sink):
        for voter in ("alice", "bob", "carol"):
            manager.approve(PROVIDER, IDENT, voter=voter)

        assert len(sink.events) == 2

    def test_rejection_is_sticky(self, manager, pending, sink):
        """Test that votes after a rejection never resubmit."""
        rejected = manager.reject(PROVIDER, IDENT)
        assert rejected.status() == ApprovalStatus.REJECTED

        manager.approve(PROVIDER, IDENT, voter="alice")
        manager.approve(PROVIDER, IDENT, voter="bob")

        stored = manager.get(PROVIDER, IDENT)
        assert stored.status() == ApprovalStatus.REJECTED
        assert stored.votes_received == 2
        assert sink.events == []

    def test_vote_on_missing_record(self, manager):
        with pytest.raises(NotFoundError):
            manager.approve(PROVIDER, "missing")
        with pytest.raises(NotFoundError):
            manager.reject(PROVIDER, "missing")

    def test_sink_failure_keeps_vote(self, memory_cache, failing_sink, clock, make_event, capsys):
        """Test that a failing sink is logged and the vote persists."""
        manager = ApprovalManager(
            memory_cache, sink=failing_sink, clock=clock, logger=DefaultLogger()
        )
        manager.create(Approval(provider=PROVIDER, identifier=IDENT, event=make_event()))

        approval = manager.approve(PROVIDER, IDENT, voter="alice")

        assert approval.status() == ApprovalStatus.APPROVED
        assert manager.get(PROVIDER, IDENT).votes_received == 1
        assert len(failing_sink.events) == 1
        assert "failed to re-submit" in capsys.readouterr().err

    def test_no_sink_is_fine(self, memory_cache, clock):
        manager = ApprovalManager(memory_cache, clock=clock)
        manager.create(Approval(provider=PROVIDER, identifier=IDENT))

        assert manager.approve(PROVIDER, IDENT).status() == ApprovalStatus.APPROVED

    def test_stale_update_overwrites_vote(self, manager, pending):
        """Test that a direct update with an old copy wins (last write wins)."""
        stale = manager.get(PROVIDER, IDENT)
        manager.approve(PROVIDER, IDENT, voter="alice")

        stale.message = "edited"
        manager.update(stale)

        stored = manager.get(PROVIDER, IDENT)
        assert stored.votes_received == 0
        assert stored.message == "edited"

    def test_concurrent_votes_are_not_lost(self, manager, make_event):
        manager.create(
            Approval(
                provider=PROVIDER,
                identifier=IDENT,
                event=make_event(),
                votes_required=100,
            )
        )

        def vote(n: int) -> None:
            for i in range(5):
                manager.approve(PROVIDER, IDENT, voter=f"voter-{n}-{i}")

        threads = [threading.Thread(target=vote, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stored = manager.get(PROVIDER, IDENT)
        assert stored.votes_received == 40
        assert len(set(stored.voters)) == 40


class TestSubscriptions:
    """Tests for creation listeners."""

    def test_listener_receives_copy(self, manager, make_event):
        seen: list[Approval] = []
        unsubscribe = manager.subscribe(seen.append)

        created = manager.create(Approval(provider=PROVIDER, identifier=IDENT))

        assert seen == [created]
        assert seen[0] is not created

        unsubscribe()
        manager.create(Approval(provider=PROVIDER, identifier="other"))
        assert len(seen) == 1

    def test_failing_listener_does_not_block_create(self, manager):
        def boom(approval):
            raise RuntimeError("listener down")

        manager.subscribe(boom)
        manager.create(Approval(provider=PROVIDER, identifier=IDENT))

        assert manager.get(PROVIDER, IDENT).identifier == IDENT


class TestArchive:
    """Tests for archiving decided records."""

    def test_archived_record_is_hidden(self, manager, pending, memory_cache):
        manager.approve(PROVIDER, IDENT)
        manager.approve(PROVIDER, IDENT)

        archived = manager.archive(PROVIDER, IDENT)

        assert archived.archived
        with pytest.raises(NotFoundError):
            manager.get(PROVIDER, IDENT)
        assert manager.list() == []
        (history,) = manager.list(include_archived=True)
        assert history.archived
        assert history.status() == ApprovalStatus.APPROVED
        assert f"approvals/{PROVIDER}/{IDENT}" in memory_cache.list()

    def test_archive_does_not_resubmit(self, manager, pending, sink):
        manager.approve(PROVIDER, IDENT)
        manager.approve(PROVIDER, IDENT)

        manager.archive(PROVIDER, IDENT)

        assert len(sink.events) == 1

    def test_archive_twice_raises(self, manager, pending):
        manager.archive(PROVIDER, IDENT)

        with pytest.raises(NotFoundError):
            manager.archive(PROVIDER, IDENT)
        with pytest.raises(NotFoundError):
            manager.approve(PROVIDER, IDENT)

    def test_create_replaces_archived_record(self, manager, pending):
        """Test that a new vote can start once the old one is archived."""
        manager.reject(PROVIDER, IDENT)
        manager.archive(PROVIDER, IDENT)

        manager.create(Approval(provider=PROVIDER, identifier=IDENT, votes_required=1))

        stored = manager.get(PROVIDER, IDENT)
        assert stored.status() == ApprovalStatus.PENDING
        assert not stored.archived

    def test_archived_record_keeps_its_expiry(self, manager, pending, clock):
        clock.advance(timedelta(hours=1))
        manager.archive(PROVIDER, IDENT)

        clock.advance(timedelta(hours=23))

        assert manager.list(include_archived=True) == []


class TestExpiry:
    """Tests for expiry sweeps."""

    def test_expire_entries(self, manager, pending):
        """Test that only records past their deadline are removed."""
        manager.create(
            Approval(provider=PROVIDER, identifier="long", deadline=timedelta(hours=72))
        )

        expired = manager.expire_entries(now=NOW + timedelta(hours=25))

        assert [a.identifier for a in expired] == [IDENT]
        assert [a.identifier for a in manager.list()] == ["long"]

    def test_nothing_to_expire(self, manager, pending):
        assert manager.expire_entries() == []
        assert len(manager.list()) == 1

    def test_expiry_service_sweeps_on_start(self, manager, pending):
        """Test that the service runs a sweep as soon as it starts."""
        swept = threading.Event()
        original = manager.expire_entries

        def expire_entries(now=None):
            result = original(now=NOW + timedelta(hours=25))
            swept.set()
            return result

        manager.expire_entries = expire_entries
        service = ExpiryService(manager, interval=timedelta(hours=1))

        with service:
            assert service.running
            assert swept.wait(timeout=5)

        assert not service.running
        assert manager.list() == []

    def test_expiry_service_stops_promptly(self, manager):
        service = ExpiryService(manager, interval=timedelta(hours=1))
        service.start()

        started = time.monotonic()
        service.stop()

        assert time.monotonic() - started < 5
        assert not service.running

    def test_double_start_raises(self, manager):
        service = ExpiryService(manager, interval=timedelta(hours=1))
        service.start()
        try:
            with pytest.raises(RuntimeError):
                service.start()
        finally:
            service.stop()


class TestFileBackedManager:
    """Tests for the manager over a JSON state file."""

    def test_expired_records_leave_the_state_file(self, tmp_path, clock):
        state_file = tmp_path / "approvals.json"
        manager = ApprovalManager(FileCache(state_file, clock=clock), clock=clock)
        manager.create(Approval(provider=PROVIDER, identifier=IDENT, deadline=timedelta(hours=1)))

        clock.advance(timedelta(hours=2))
        manager.expire_entries()

        assert load_state(state_file)["entries"] == {}
        assert manager.list() == []

    def test_sweep_removes_record_past_deadline(self, tmp_path, clock):
        state_file = tmp_path / "approvals.json"
        manager = ApprovalManager(FileCache(state_file, clock=clock), clock=clock)
        manager.create(Approval(provider=PROVIDER, identifier=IDENT))

        expired = manager.expire_entries(now=NOW + timedelta(hours=25))

        assert [a.identifier for a in expired] == [IDENT]
        assert load_state(state_file)["entries"] == {}

    def test_corrupted_entry_is_skipped(self, tmp_path, clock, capsys):
        """Test that one undecodable entry leaves the rest listable."""
        state_file = tmp_path / "approvals.json"
        cache = FileCache(state_file, clock=clock, logger=DefaultLogger())
        manager = ApprovalManager(cache, clock=clock)
        manager.create(Approval(provider=PROVIDER, identifier=IDENT))
        state = load_state(state_file)
        state["entries"][f"approvals/{PROVIDER}/bad"] = {"value": "!!!notb64"}
        save_state(state, state_file)

        assert [a.identifier for a in manager.list()] == [IDENT]
        assert manager.get(PROVIDER, IDENT).identifier == IDENT
        assert "bad" in capsys.readouterr().err
