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

"""Gate orchestration for rollgate.

For every detected tag change the gate walks the workloads of each
registered provider and, for each workload running the changed image:

1. Checks eligibility with the workload's update policy.
2. Checks the maintenance windows and cooldown from its annotations.
3. If the workload requires votes, creates or reads its approval record.
4. Applies the update through the provider and clears the approval.

The first failing step decides the outcome for that workload. Provider
failures are reported per workload and never stop the others.

The gate is also the approval manager's resubmission sink: once an approval
reaches quorum, the original event comes back through ``submit`` and this
time passes step 3.

Example:
    Wire a gate around one provider:

        from rollgate.gate import ProviderRegistry, build_gate

        registry = ProviderRegistry()
        registry.register(my_kubernetes_provider)
        gate = build_gate(registry)

        for decision in gate.submit(event):
            print(decision.workload, decision.outcome)

"""

from __future__ import annotations

from collections.abc import Iterator
import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
import threading
from typing import Protocol

from rollgate.approvals import ApprovalManager
from rollgate.cache import Cache, Clock, MemoryCache, utc_now
from rollgate.config import GateSettings
from rollgate.exceptions import (
    AlreadyExistsError,
    ConfigError,
    ImageReferenceError,
    NotFoundError,
    RollgateError,
    ScheduleError,
)
from rollgate.image import Reference, parse_reference
from rollgate.logging import Logger, SilentLogger
from rollgate.models import Approval, ApprovalStatus, Event
from rollgate.policy import policy_from_labels
from rollgate.results import GateDecision, Outcome
from rollgate.schedule import is_update_allowed, parse_schedule
from rollgate.tracking import (
    TrackedImage,
    is_newer_in_channel,
    lookup_semver_index,
    merge,
    track_images,
)

# -------------------------------
# Provider contract
# -------------------------------


@dataclass
class Workload:
    """A deployable unit managed by a provider.

    Attributes:
        identifier: Unique id within the provider, e.g. "default/web".
        namespace: Namespace the workload lives in.
        name: Workload name.
        images: Container image references, one per container.
        labels: Workload labels.
        annotations: Workload annotations.

    """

    identifier: str
    namespace: str = ""
    name: str = ""
    images: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UpdatePlan:
    """A workload update the gate wants applied.

    Attributes:
        workload: Workload to update.
        containers: Indexes into ``workload.images`` to change.
        current: Reference the workload runs now.
        new: Reference to move to.
        event: The event that triggered the update.

    """

    workload: Workload
    containers: tuple[int, ...]
    current: Reference
    new: Reference
    event: Event


class Provider(Protocol):
    """Protocol for workload providers (Kubernetes, Helm, ...)."""

    name: str

    def workloads(self) -> list[Workload]:
        """Return every workload this provider manages."""
        ...

    def apply(self, plan: UpdatePlan) -> None:
        """Apply an update plan. Raise on failure."""
        ...


class ProviderRegistry:
    """Providers known to one gate, keyed by name.

    Registering a name twice replaces the earlier provider.
    """

    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}

    def register(self, provider: Provider) -> None:
        self._providers[provider.name] = provider

    def unregister(self, name: str) -> None:
        self._providers.pop(name, None)

    def get(self, name: str) -> Provider:
        """Look up a provider by name.

        Raises:
            ConfigError: If no provider with that name is registered.

        """
        if name not in self._providers:
            available = ", ".join(self._providers) or "(none)"
            raise ConfigError(f"Unknown provider: {name!r}. Available: {available}")
        return self._providers[name]

    def names(self) -> list[str]:
        return list(self._providers)

    def __iter__(self) -> Iterator[Provider]:
        return iter(list(self._providers.values()))

    def __len__(self) -> int:
        return len(self._providers)


# -------------------------------
# Orchestrator
# -------------------------------


def _lookup(workload: Workload, key: str) -> str | None:
    """Annotation value for key, falling back to the label."""
    if key in workload.annotations:
        return workload.annotations[key]
    return workload.labels.get(key)


class GateOrchestrator:
    """Runs detected tag changes through policy, schedule and approvals.

    Attributes:
        registry: Providers whose workloads are gated.
        approvals: Approval manager holding vote records.
        settings: Annotation keys and approval defaults.

    """

    def __init__(
        self,
        registry: ProviderRegistry,
        approvals: ApprovalManager,
        settings: GateSettings | None = None,
        clock: Clock | None = None,
        logger: Logger | None = None,
    ):
        self.registry = registry
        self.approvals = approvals
        self.settings = settings or GateSettings()
        self._clock = clock or utc_now
        self._logger = logger or SilentLogger()
        self._lock = threading.Lock()
        self._observed: list[TrackedImage] = []

    # ----------------------------
    # Version tracking
    # ----------------------------

    def tracked_images(self) -> list[TrackedImage]:
        """Tracked-image set for all workloads plus observed event tags."""
        observations: list[TrackedImage] = []
        for provider in self.registry:
            for workload in self._workloads(provider):
                policy = policy_from_labels(workload.labels, workload.annotations)
                for image in workload.images:
                    try:
                        ref = parse_reference(image)
                    except ImageReferenceError as err:
                        self._logger.warning("GATE", f"{workload.identifier}: {err}")
                        continue
                    observations.append(
                        TrackedImage.from_reference(
                            ref,
                            meta={"workload": workload.identifier},
                            provider=provider.name,
                            namespace=workload.namespace,
                            policy=policy.name,
                        )
                    )

        tracked = track_images(observations)
        with self._lock:
            for entry in self._observed:
                tracked = merge(tracked, entry)
        return tracked

    def _record(self, ref: Reference, event: Event) -> None:
        """Remember an event tag if it advances its channel."""
        observation = TrackedImage.from_reference(
            ref, meta={"trigger": event.trigger_name}
        )
        with self._lock:
            idx = lookup_semver_index(self._observed, observation)
            if idx is not None and not is_newer_in_channel(
                self._observed[idx], ref.tag
            ):
                self._logger.debug("GATE", f"{ref.name} does not advance its channel")
                return
            if idx is None and observation.tags is None:
                # Keep at most one placeholder per non-semver reference.
                if any(e.image == ref for e in self._observed):
                    return
            self._observed = merge(self._observed, observation)

    # ----------------------------
    # Gating
    # ----------------------------

    def submit(self, event: Event) -> list[GateDecision]:
        """Gate one detected tag change.

        Returns:
            One decision per workload running the event's image.

        """
        try:
            event_ref = parse_reference(str(event.repository))
        except ImageReferenceError as err:
            self._logger.warning("GATE", f"ignoring event: {err}")
            return []

        self._record(event_ref, event)
        now = self._clock()
        self._logger.verbose("GATE", f"Evaluating {event_ref.name}")

        decisions: list[GateDecision] = []
        for provider in self.registry:
            for workload in self._workloads(provider):
                containers: list[int] = []
                current: Reference | None = None
                for idx, image in enumerate(workload.images):
                    try:
                        ref = parse_reference(image)
                    except ImageReferenceError:
                        continue
                    if ref.base_name == event_ref.base_name:
                        containers.append(idx)
                        current = current or ref
                if current is None:
                    continue

                plan = UpdatePlan(
                    workload=workload,
                    containers=tuple(containers),
                    current=current,
                    new=event_ref,
                    event=event,
                )
                decision = self._evaluate(provider, plan, now)
                self._logger.verbose(
                    "GATE",
                    f"{provider.name}/{workload.identifier}: {decision.outcome}"
                    + (f" ({decision.reason})" if decision.reason else ""),
                )
                decisions.append(decision)
        return decisions

    def _workloads(self, provider: Provider) -> list[Workload]:
        try:
            return list(provider.workloads())
        except Exception as err:
            self._logger.warning("GATE", f"{provider.name}: listing workloads failed: {err}")
            return []

    def _evaluate(self, provider: Provider, plan: UpdatePlan, now: datetime) -> GateDecision:
        workload = plan.workload
        current_tag, new_tag = plan.current.tag, plan.new.tag

        def decide(outcome: Outcome, reason: str = "", approval_id: str | None = None):
            return GateDecision(
                provider=provider.name,
                workload=workload.identifier,
                outcome=outcome,
                current_version=current_tag,
                new_version=new_tag,
                reason=reason,
                approval_id=approval_id,
            )

        # 1) Eligibility
        policy = policy_from_labels(workload.labels, workload.annotations, self._logger)
        if not policy.should_update(current_tag, new_tag):
            return decide("not_eligible", f"policy {policy.name!r}")

        # 2) Maintenance windows
        try:
            schedule = parse_schedule(workload.annotations.get(self.settings.schedule_key))
        except ScheduleError as err:
            return decide("error", str(err))
        last_update = self._last_update(workload)
        if not is_update_allowed(schedule, last_update, now, self._logger):
            return decide("outside_window", "no maintenance window open")

        # 3) Approvals
        votes_required = self._votes_required(workload)
        approval_id: str | None = None
        if votes_required > 0:
            approval_id = f"{workload.identifier}:{new_tag}"
            try:
                status = self._approval_status(provider, plan, approval_id, votes_required)
            except RollgateError as err:
                return decide("error", str(err), approval_id)
            if status == ApprovalStatus.REJECTED:
                return decide("rejected", "update was rejected", approval_id)
            if status == ApprovalStatus.PENDING:
                return decide("awaiting_approval", "waiting for votes", approval_id)

        # 4) Apply
        try:
            provider.apply(plan)
        except Exception as err:
            self._logger.warning(
                "GATE", f"{provider.name}/{workload.identifier}: apply failed: {err}"
            )
            return decide("error", f"apply failed: {err}", approval_id)

        if approval_id is not None:
            try:
                self.approvals.archive(provider.name, approval_id)
            except RollgateError as err:
                self._logger.warning(
                    "GATE", f"{provider.name}/{approval_id}: archiving approval failed: {err}"
                )
        return decide("updated", approval_id=approval_id)

    def _approval_status(
        self,
        provider: Provider,
        plan: UpdatePlan,
        approval_id: str,
        votes_required: int,
    ) -> ApprovalStatus:
        try:
            return self.approvals.get(provider.name, approval_id).status()
        except NotFoundError:
            pass

        workload = plan.workload
        approval = Approval(
            provider=provider.name,
            identifier=approval_id,
            event=copy.deepcopy(plan.event),
            current_version=plan.current.tag,
            new_version=plan.new.tag,
            votes_required=votes_required,
            deadline=self._approval_deadline(workload),
            message=(
                f"New image is available for {workload.identifier}: "
                f"{plan.current.name} -> {plan.new.name}"
            ),
            digest=plan.event.repository.digest,
        )
        try:
            self.approvals.create(approval)
        except AlreadyExistsError:
            return self.approvals.get(provider.name, approval_id).status()
        return approval.status()

    def _votes_required(self, workload: Workload) -> int:
        raw = _lookup(workload, self.settings.approvals_key)
        if not raw:
            return 0
        try:
            return max(int(raw), 0)
        except ValueError:
            self._logger.warning(
                "GATE", f"{workload.identifier}: invalid approvals value {raw!r}"
            )
            return 0

    def _approval_deadline(self, workload: Workload) -> timedelta:
        raw = _lookup(workload, self.settings.approval_deadline_key)
        if raw:
            try:
                hours = int(raw)
            except ValueError:
                hours = 0
            if hours > 0:
                return timedelta(hours=hours)
            self._logger.warning(
                "GATE", f"{workload.identifier}: invalid approval deadline {raw!r}"
            )
        return self.settings.approval_deadline

    def _last_update(self, workload: Workload) -> datetime | None:
        raw = workload.annotations.get(self.settings.update_time_key)
        if not raw:
            return None
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            self._logger.warning(
                "GATE", f"{workload.identifier}: invalid update time {raw!r}"
            )
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


def build_gate(
    registry: ProviderRegistry,
    cache: Cache | None = None,
    settings: GateSettings | None = None,
    clock: Clock | None = None,
    logger: Logger | None = None,
) -> GateOrchestrator:
    """Build a gate and an approval manager that resubmits into it.

    Args:
        registry: Providers to gate.
        cache: Approval storage; an in-memory cache when omitted.
        settings: Annotation keys and approval defaults.
        clock: Source of the current time, shared by gate and manager.
        logger: Logger shared by gate and manager.

    Returns:
        The gate. Its approval manager is available as ``gate.approvals``.

    """
    settings = settings or GateSettings()
    manager = ApprovalManager(
        cache if cache is not None else MemoryCache(clock=clock),
        prefix=settings.cache_prefix,
        clock=clock,
        logger=logger,
    )
    gate = GateOrchestrator(
        registry, manager, settings=settings, clock=clock, logger=logger
    )
    manager.sink = gate
    return gate
