"""
Update eligibility policies for rollgate.

Modules
-------
updates : module
    Policy types and the label/annotation reader.

Public API
----------
policy_from_labels : function
    Read a workload's policy from its labels and annotations.
get_policy : function
    Build a policy from its name.
SemverPolicy, ForcePolicy, GlobPolicy, RegexpPolicy, NeverPolicy : dataclass
    The available policies.
"""

from .updates import (
    MATCH_PRERELEASE_KEY,
    MATCH_TAG_KEY,
    POLICY_KEY,
    ForcePolicy,
    GlobPolicy,
    NeverPolicy,
    Policy,
    RegexpPolicy,
    SemverPolicy,
    get_policy,
    policy_from_labels,
)

__all__ = [
    "MATCH_PRERELEASE_KEY",
    "MATCH_TAG_KEY",
    "POLICY_KEY",
    "ForcePolicy",
    "GlobPolicy",
    "NeverPolicy",
    "Policy",
    "RegexpPolicy",
    "SemverPolicy",
    "get_policy",
    "policy_from_labels",
]
