"""
Pytest configuration and shared fixtures for rollgate tests.

This module provides reusable fixtures and test doubles used across
the test suite: a manual clock, in-memory caches, a recording
resubmission sink and a fake workload provider.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import yaml

from rollgate.cache import MemoryCache
from rollgate.gate import UpdatePlan, Workload
from rollgate.models import Event, Repository

NOW = datetime(2023, 5, 15, 14, 30, tzinfo=UTC)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class RecordingSink:
    """Resubmission sink that remembers every event it receives."""

    def __init__(self, fail: bool = False):
        self.events: list[Event] = []
        self.fail = fail

    def submit(self, event: Event) -> None:
        self.events.append(event)
        if self.fail:
            raise RuntimeError("sink unavailable")


class FakeProvider:
    """Provider with a fixed workload list that records applied plans."""

    def __init__(self, name: str = "kubernetes", workloads: list[Workload] | None = None):
        self.name = name
        self._workloads = workloads or []
        self.applied: list[UpdatePlan] = []
        self.fail_on: set[str] = set()

    def workloads(self) -> list[Workload]:
        return list(self._workloads)

    def apply(self, plan: UpdatePlan) -> None:
        if plan.workload.identifier in self.fail_on:
            raise RuntimeError("patch rejected by API server")
        self.applied.append(plan)


@pytest.fixture
def clock() -> ManualClock:
    """Provide a manual clock set to 2023-05-15T14:30:00Z."""
    return ManualClock()


@pytest.fixture
def memory_cache(clock: ManualClock) -> MemoryCache:
    """Provide an in-memory cache driven by the manual clock."""
    return MemoryCache(clock=clock)


@pytest.fixture
def sink() -> RecordingSink:
    """Provide a resubmission sink that records events."""
    return RecordingSink()


@pytest.fixture
def failing_sink() -> RecordingSink:
    """Provide a resubmission sink that raises after recording."""
    return RecordingSink(fail=True)


@pytest.fixture
def make_event():
    """Provide a factory for trigger events."""

    def _make(name: str = "karolisr/webhook-demo", tag: str = "1.3.0", digest: str = "") -> Event:
        return Event(
            repository=Repository(name=name, tag=tag, digest=digest),
            created_at=NOW,
            trigger_name="poll",
        )

    return _make


@pytest.fixture
def make_provider():
    """Provide a factory for fake providers."""

    def _make(workloads: list[Workload], name: str = "kubernetes") -> FakeProvider:
        return FakeProvider(name=name, workloads=workloads)

    return _make


@pytest.fixture
def sample_config_data() -> dict[str, Any]:
    """Provide a sample rollgate configuration overlay."""
    return {
        "approvals": {"deadline_hours": 48},
        "webhook": {
            "url": "https://rollgate.example.com/v1/webhooks/native",
            "timeout": 10,
        },
    }


@pytest.fixture
def config_file(tmp_path: Path, sample_config_data: dict[str, Any]) -> Path:
    """Write the sample configuration to a YAML file."""
    path = tmp_path / "rollgate.yaml"
    path.write_text(yaml.safe_dump(sample_config_data), encoding="utf-8")
    return path
