"""Public API return types for rollgate.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Example:
    Inspect what the gate decided for an event:
        ```python
        for decision in gate.submit(event):
            print(decision.workload, decision.outcome, decision.reason)
        ```

Note:
    Only public API return types belong in this module. Domain types (like
    Approval or TrackedImage) stay co-located with their related logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Outcome = Literal[
    "updated",
    "not_eligible",
    "outside_window",
    "awaiting_approval",
    "rejected",
    "error",
]


@dataclass(frozen=True)
class GateDecision:
    """What the gate did with one workload for one event.

    Attributes:
        provider: Provider that owns the workload.
        workload: Workload identifier.
        outcome: "updated", "not_eligible", "outside_window",
            "awaiting_approval", "rejected" or "error".
        current_version: Tag the workload ran when evaluated.
        new_version: Tag from the event.
        reason: Human-readable detail, mostly for non-updated outcomes.
        approval_id: Approval identifier when the workload requires votes.
    """

    provider: str
    workload: str
    outcome: Outcome
    current_version: str
    new_version: str
    reason: str = ""
    approval_id: str | None = None

    @property
    def updated(self) -> bool:
        return self.outcome == "updated"
