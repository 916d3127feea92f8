"""
Approval gate for rollgate.

Modules
-------
manager : module
    Approval state machine, resubmission and expiry sweep.

Public API
----------
ApprovalManager : class
    Create, vote on, reject, list and expire approval records.
ExpiryService : class
    Background thread that periodically expires records.
Approval, ApprovalStatus, ProviderType, Event, Repository : re-exported
    from rollgate.models.
"""

from rollgate.models import (
    Approval,
    ApprovalStatus,
    Event,
    ProviderType,
    Repository,
)

from .manager import (
    DEFAULT_EXPIRY_INTERVAL,
    DEFAULT_PREFIX,
    ApprovalManager,
    ExpiryService,
)

__all__ = [
    "DEFAULT_EXPIRY_INTERVAL",
    "DEFAULT_PREFIX",
    "Approval",
    "ApprovalManager",
    "ApprovalStatus",
    "Event",
    "ExpiryService",
    "ProviderType",
    "Repository",
]
