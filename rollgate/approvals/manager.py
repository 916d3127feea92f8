# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Approval state machine for rollgate.

Each pending update that needs human consent is stored as an Approval under
``<prefix>/<provider>/<identifier>`` in a cache. Votes move the record from
pending to approved once ``votes_received >= votes_required``; a rejection
is sticky and wins over any number of votes.

Whenever a stored change leaves the record approved, a copy of its
triggering event is handed to the resubmission sink, so the gate evaluates
the update again and this time finds it approved. Sink failures are logged
and never undo the vote. Once the gate applies the update it archives the
record, which keeps it as history but hides it from get and list.

Records expire ``deadline`` after creation. The cache drops them on its own
when it honours TTLs; ExpiryService additionally sweeps them on a timer.

Example:
    Collect two votes for an update:

        from rollgate.approvals import Approval, ApprovalManager
        from rollgate.cache import MemoryCache

        manager = ApprovalManager(MemoryCache(), sink=my_sink)
        manager.create(Approval(provider="kubernetes",
                                identifier="default/web:1.3.0",
                                event=event, votes_required=2))
        manager.approve("kubernetes", "default/web:1.3.0", voter="alice")
        manager.approve("kubernetes", "default/web:1.3.0", voter="bob")
        # my_sink.submit(event) has been called once

"""

from __future__ import annotations

from collections.abc import Callable
import copy
from datetime import datetime, timedelta
import threading

from rollgate.cache.base import Cache, Clock, utc_now
from rollgate.codecs import JSONSerializer, Serializer
from rollgate.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    RollgateError,
    SerializationError,
)
from rollgate.logging import Logger, SilentLogger
from rollgate.models import Approval, ApprovalStatus
from rollgate.triggers.sink import ResubmissionSink

DEFAULT_PREFIX = "approvals"
DEFAULT_EXPIRY_INTERVAL = timedelta(minutes=60)

Listener = Callable[[Approval], None]


class ApprovalManager:
    """Create, vote on and expire approval records.

    ``approve`` and ``reject`` hold a manager-wide lock around their
    read-modify-write, so votes cast through one manager are never lost.
    Direct ``update`` calls with a stale record, or other processes writing
    the same cache, still overwrite each other (last write wins).

    Attributes:
        sink: Receives the triggering event once a record is approved. May
            be set after construction.

    """

    def __init__(
        self,
        cache: Cache,
        sink: ResubmissionSink | None = None,
        serializer: Serializer | None = None,
        prefix: str = DEFAULT_PREFIX,
        clock: Clock | None = None,
        logger: Logger | None = None,
    ):
        self.sink = sink
        self._cache = cache
        self._serializer = serializer or JSONSerializer()
        self._prefix = prefix.rstrip("/")
        self._clock = clock or utc_now
        self._logger = logger or SilentLogger()
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []

    # ----------------------------
    # Keys
    # ----------------------------

    def key(self, provider: str, identifier: str) -> str:
        return f"{self._prefix}/{provider}/{identifier}"

    def _provider_prefix(self, provider: str | None) -> str:
        if provider:
            return f"{self._prefix}/{provider}/"
        return f"{self._prefix}/"

    # ----------------------------
    # Subscriptions
    # ----------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with every newly created record.

        Returns:
            A function that removes the listener again.

        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ----------------------------
    # CRUD
    # ----------------------------

    def create(self, approval: Approval) -> Approval:
        """Store a new record.

        Sets created_at and updated_at. The record lives for its deadline.
        An archived record under the same key is replaced.

        Raises:
            AlreadyExistsError: If a record with the same provider and
                identifier exists.

        """
        key = self.key(approval.provider, approval.identifier)
        with self._lock:
            try:
                self.get(approval.provider, approval.identifier)
            except NotFoundError:
                pass
            else:
                raise AlreadyExistsError(f"approval already exists: {key}")

            now = self._clock()
            approval.created_at = now
            approval.updated_at = now
            self._cache.put(key, self._serializer.encode(approval), ttl=approval.deadline)

        self._logger.verbose(
            "APPROVALS",
            f"Created {key} ({approval.delta()}, "
            f"{approval.votes_required} vote(s) required)",
        )
        for listener in list(self._listeners):
            try:
                listener(copy.deepcopy(approval))
            except Exception as err:
                self._logger.warning("APPROVALS", f"listener failed for {key}: {err}")
        return approval

    def get(self, provider: str, identifier: str) -> Approval:
        """Load a record that has not been archived.

        Raises:
            NotFoundError: If no such record exists or it is archived.
            SerializationError: If the stored bytes cannot be decoded.

        """
        key = self.key(provider, identifier)
        approval = self._serializer.decode(self._cache.get(key))
        if approval.archived:
            raise NotFoundError(f"approval archived: {key}")
        return approval

    def update(self, approval: Approval) -> Approval:
        """Store a changed record and resubmit its event once approved.

        The stored created_at is kept; updated_at is set to now. The record
        keeps its original expiry time.

        Raises:
            NotFoundError: If the record does not exist.

        """
        key = self._store(approval)

        status = approval.status()
        self._logger.debug("APPROVALS", f"Updated {key}: {status}")
        if status == ApprovalStatus.APPROVED:
            self._resubmit(approval)
        return approval

    def approve(self, provider: str, identifier: str, voter: str | None = None) -> Approval:
        """Add one vote.

        A named voter who already voted does not add a second vote. There is
        no upper bound on votes_received.

        Raises:
            NotFoundError: If the record does not exist.

        """
        with self._lock:
            approval = self.get(provider, identifier)
            if voter and voter in approval.voters:
                self._logger.verbose("APPROVALS", f"{voter} already voted on {identifier}")
                return approval
            if voter:
                approval.voters.append(voter)
            approval.votes_received += 1
            self.update(approval)

        self._logger.verbose(
            "APPROVALS",
            f"Approved {identifier} ({approval.votes_received}/"
            f"{approval.votes_required})",
        )
        return approval

    def reject(self, provider: str, identifier: str) -> Approval:
        """Mark a record rejected. Rejection is never cleared.

        Raises:
            NotFoundError: If the record does not exist.

        """
        with self._lock:
            approval = self.get(provider, identifier)
            approval.rejected = True
            self.update(approval)

        self._logger.verbose("APPROVALS", f"Rejected {identifier}")
        return approval

    def archive(self, provider: str, identifier: str) -> Approval:
        """Mark a decided record archived once its update was applied.

        The record stays stored until its deadline as history, but get and
        list no longer return it. The event is not resubmitted.

        Raises:
            NotFoundError: If the record does not exist or is archived.

        """
        with self._lock:
            approval = self.get(provider, identifier)
            approval.archived = True
            key = self._store(approval)

        self._logger.verbose("APPROVALS", f"Archived {key} ({approval.status()})")
        return approval

    def list(
        self, provider: str | None = None, include_archived: bool = False
    ) -> list[Approval]:
        """Records for one provider, or all of them, ordered by key.

        Archived records are left out unless include_archived is set.
        Records that fail to decode are logged and skipped.
        """
        out: list[Approval] = []
        entries = self._cache.list(self._provider_prefix(provider))
        for key in sorted(entries):
            try:
                approval = self._serializer.decode(entries[key])
            except SerializationError as err:
                self._logger.warning("APPROVALS", f"skipping {key}: {err}")
                continue
            if approval.archived and not include_archived:
                continue
            out.append(approval)
        return out

    def delete(self, provider: str, identifier: str) -> None:
        """Remove a record. Removing a missing record is not an error."""
        self._cache.delete(self.key(provider, identifier))
        self._logger.debug("APPROVALS", f"Deleted {self.key(provider, identifier)}")

    def expire_entries(self, now: datetime | None = None) -> list[Approval]:
        """Delete every record older than its deadline.

        Returns:
            The deleted records.

        """
        now = now or self._clock()
        expired: list[Approval] = []
        for approval in self.list():
            if not approval.expired(now):
                continue
            self.delete(approval.provider, approval.identifier)
            expired.append(approval)
            self._logger.verbose(
                "APPROVALS",
                f"Expired {approval.provider}/{approval.identifier} "
                f"({approval.delta()})",
            )
        return expired

    def _store(self, approval: Approval) -> str:
        """Overwrite an existing record, keeping its created_at and expiry."""
        key = self.key(approval.provider, approval.identifier)
        existing = self.get(approval.provider, approval.identifier)

        now = self._clock()
        approval.created_at = existing.created_at
        approval.updated_at = now

        ttl: timedelta | None = None
        expires_at = approval.expires_at()
        if expires_at is not None and expires_at > now:
            ttl = expires_at - now
        self._cache.put(key, self._serializer.encode(approval), ttl=ttl)
        return key

    # ----------------------------
    # Resubmission
    # ----------------------------

    def _resubmit(self, approval: Approval) -> None:
        if self.sink is None or approval.event is None:
            self._logger.debug(
                "APPROVALS", f"Nothing to resubmit for {approval.identifier}"
            )
            return
        try:
            self.sink.submit(copy.deepcopy(approval.event))
        except Exception as err:
            self._logger.warning(
                "APPROVALS",
                f"failed to re-submit event for {approval.identifier} "
                f"after approvals were collected: {err}",
            )
        else:
            self._logger.verbose(
                "APPROVALS", f"Re-submitted event for {approval.identifier}"
            )


class ExpiryService:
    """Background sweep that deletes expired approvals.

    Runs one sweep as soon as it starts, then one per interval until
    stopped.

    Example:
        Run alongside a long-lived process:
            ```python
            with ExpiryService(manager, interval=timedelta(minutes=60)):
                serve_forever()
            ```

    """

    def __init__(
        self,
        manager: ApprovalManager,
        interval: timedelta = DEFAULT_EXPIRY_INTERVAL,
        logger: Logger | None = None,
    ):
        self.manager = manager
        self.interval = interval
        self._logger = logger or SilentLogger()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            raise RuntimeError("expiry service already running")
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="rollgate-approval-expiry", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        self._sweep("initial")
        while not self._stop.wait(self.interval.total_seconds()):
            self._sweep("periodic")

    def _sweep(self, kind: str) -> None:
        try:
            expired = self.manager.expire_entries()
        except RollgateError as err:
            self._logger.warning(
                "APPROVALS", f"{kind} expired approvals check failed: {err}"
            )
            return
        if expired:
            self._logger.verbose(
                "APPROVALS", f"{kind} sweep removed {len(expired)} approval(s)"
            )

    def __enter__(self) -> ExpiryService:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
