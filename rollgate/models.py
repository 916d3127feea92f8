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

"""Domain records shared by the approval manager and the gate.

- Repository / Event: a detected tag change, as reported by a trigger.
- Approval: the persisted voting record for one pending update.

All records convert to and from plain dicts with camelCase keys, which is
the external representation stored in caches and printed by the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any
import uuid

from rollgate.schedule.duration import format_duration, parse_duration


class ProviderType(StrEnum):
    KUBERNETES = "kubernetes"
    HELM = "helm"


class ApprovalStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _dt_to_str(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt_from_str(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Repository:
    """Image repository a trigger reported a new tag for.

    Attributes:
        name: Repository name, e.g. "karolisr/webhook-demo".
        tag: The new tag.
        digest: Optional image digest.
        host: Optional registry host.

    """

    name: str
    tag: str = ""
    digest: str = ""
    host: str = ""

    def __str__(self) -> str:
        out = f"{self.host}/{self.name}" if self.host else self.name
        return f"{out}:{self.tag}" if self.tag else out

    def to_dict(self) -> dict[str, str]:
        return {
            "host": self.host,
            "name": self.name,
            "tag": self.tag,
            "digest": self.digest,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Repository:
        return cls(
            name=data["name"],
            tag=data.get("tag", ""),
            digest=data.get("digest", ""),
            host=data.get("host", ""),
        )


@dataclass
class Event:
    """A detected tag change.

    Attributes:
        repository: Repository and tag that changed.
        created_at: When the trigger observed the change.
        trigger_name: Name of the trigger that produced the event.

    """

    repository: Repository
    created_at: datetime | None = None
    trigger_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository": self.repository.to_dict(),
            "createdAt": _dt_to_str(self.created_at),
            "triggerName": self.trigger_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        return cls(
            repository=Repository.from_dict(data["repository"]),
            created_at=_dt_from_str(data.get("createdAt")),
            trigger_name=data.get("triggerName", ""),
        )


@dataclass
class Approval:
    """Persisted voting record for one pending update.

    A record is identified by ``(provider, identifier)``. It holds its own
    copy of the triggering event, which is resubmitted once quorum is
    reached.

    Attributes:
        provider: Provider that owns the workload ("kubernetes", "helm").
        identifier: Workload identifier, unique within the provider.
        event: Snapshot of the event that triggered the update.
        current_version: Tag the workload currently runs.
        new_version: Tag the workload would move to.
        votes_required: Votes needed for quorum.
        votes_received: Votes received so far.
        voters: Ids of named voters, in voting order.
        rejected: Set once the update is rejected; never cleared.
        archived: Set once the decided update was applied. Archived
            records are kept as history but hidden from get and list.
        deadline: Lifetime of the record, counted from created_at.
        created_at: Set once, when the record is first stored.
        updated_at: Refreshed on every stored change.
        message: Human-readable description of the update.
        digest: Image digest the votes apply to.
        id: Random record id, informational.

    """

    provider: str
    identifier: str
    event: Event | None = None
    current_version: str = ""
    new_version: str = ""
    votes_required: int = 1
    votes_received: int = 0
    voters: list[str] = field(default_factory=list)
    rejected: bool = False
    archived: bool = False
    deadline: timedelta = timedelta(hours=24)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    message: str = ""
    digest: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def status(self) -> ApprovalStatus:
        if self.rejected:
            return ApprovalStatus.REJECTED
        if self.votes_received >= self.votes_required:
            return ApprovalStatus.APPROVED
        return ApprovalStatus.PENDING

    def delta(self) -> str:
        """What would change, e.g. "1.2.0 -> 1.3.0"."""
        return f"{self.current_version} -> {self.new_version}"

    def expires_at(self) -> datetime | None:
        if self.created_at is None:
            return None
        return self.created_at + self.deadline

    def expired(self, now: datetime) -> bool:
        """True once more than ``deadline`` has passed since creation."""
        if self.created_at is None:
            return False
        return now - self.created_at > self.deadline

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider": str(self.provider),
            "identifier": self.identifier,
            "event": self.event.to_dict() if self.event is not None else None,
            "message": self.message,
            "currentVersion": self.current_version,
            "newVersion": self.new_version,
            "digest": self.digest,
            "votesRequired": self.votes_required,
            "votesReceived": self.votes_received,
            "voters": list(self.voters),
            "rejected": self.rejected,
            "archived": self.archived,
            "deadline": format_duration(self.deadline),
            "createdAt": _dt_to_str(self.created_at),
            "updatedAt": _dt_to_str(self.updated_at),
            "delta": self.delta(),
            "status": str(self.status()),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Approval:
        """Rebuild a record from to_dict output. Derived keys are ignored."""
        event = data.get("event")
        return cls(
            id=data["id"] if "id" in data else str(uuid.uuid4()),
            provider=data["provider"],
            identifier=data["identifier"],
            event=Event.from_dict(event) if event else None,
            message=data.get("message", ""),
            current_version=data.get("currentVersion", ""),
            new_version=data.get("newVersion", ""),
            digest=data.get("digest", ""),
            votes_required=int(data.get("votesRequired", 1)),
            votes_received=int(data.get("votesReceived", 0)),
            voters=list(data.get("voters") or []),
            rejected=bool(data.get("rejected", False)),
            archived=bool(data.get("archived", False)),
            deadline=parse_duration(data.get("deadline") or "0"),
            created_at=_dt_from_str(data.get("createdAt")),
            updated_at=_dt_from_str(data.get("updatedAt")),
        )
