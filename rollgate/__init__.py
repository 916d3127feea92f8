"""
rollgate - Update Gating Engine

A Python library and CLI that decides whether a containerized workload may
move to a newly published image tag, and when.

rollgate provides:
  - Semver-aware tracking of the latest tag per release channel
  - Per-workload update policies (semver levels, force, glob, regexp)
  - Cron-based maintenance windows with cooldown
  - Human approval voting with expiry and automatic resubmission
  - A gate that runs every tag change through all of the above

Quick Start
-----------
Check a maintenance window annotation:

    $ rollgate schedule "0 0 2 * * *|2h"

List pending approvals:

    $ rollgate approvals list --state-file state/approvals.json

For full CLI documentation:

    $ rollgate --help

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
gate : module
    Gate orchestrator, provider contract and registry.
approvals : package
    Approval manager and expiry service.
schedule : package
    Maintenance window evaluation.
tracking : package
    Tracked-image merging per base image name.
policy : package
    Update eligibility policies.
cache : package
    In-memory and JSON state-file approval storage.
config : package
    YAML configuration loading and merging.

Public API
----------
    from rollgate.gate import ProviderRegistry, build_gate
    from rollgate.approvals import ApprovalManager
    from rollgate.schedule import is_update_allowed, parse_schedule
    from rollgate.tracking import merge

For more details, see the individual module docstrings.
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"
__description__ = "Update gating engine for container workloads"

# Re-export commonly used functions for convenience
from rollgate.approvals import ApprovalManager
from rollgate.config import load_effective_config
from rollgate.gate import GateOrchestrator, ProviderRegistry, build_gate
from rollgate.schedule import is_update_allowed, parse_schedule
from rollgate.tracking import merge

__all__ = [
    "__version__",
    "__license__",
    "__description__",
    "ApprovalManager",
    "GateOrchestrator",
    "ProviderRegistry",
    "build_gate",
    "is_update_allowed",
    "load_effective_config",
    "merge",
    "parse_schedule",
]
