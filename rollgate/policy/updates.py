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

"""Update eligibility policy for rollgate.

Determines whether a workload running ``current`` should move to a newly
observed tag ``new``, based on the policy configured on the workload.

Policies:

- "all", "major", "minor", "patch": semantic version policies. "minor" stays
  on the current major line, "patch" on the current major.minor line.
- "force": always update. With match-tag enabled, only when the tag is
  unchanged (a re-push of the same tag with a new digest).
- "glob:<pattern>": the new tag matches the pattern and sorts after the
  current one.
- "regexp:<pattern>": as glob, with a regular expression.
- "never": never update. Missing, unknown or invalid policies behave the
  same way.

Example:
    Read the policy from a workload and check a tag:

        from rollgate.policy import policy_from_labels

        policy = policy_from_labels(
            labels={"rollgate.io/policy": "minor"},
            annotations={},
        )
        policy.should_update("1.2.3", "1.3.0")  # True
        policy.should_update("1.2.3", "2.0.0")  # False

"""

from __future__ import annotations

from dataclasses import dataclass
import fnmatch
import re
from typing import Literal, Protocol

from rollgate.logging import Logger, SilentLogger
from rollgate.versioning import compare_semver, parse_semver

POLICY_KEY = "rollgate.io/policy"
MATCH_TAG_KEY = "rollgate.io/match-tag"
MATCH_PRERELEASE_KEY = "rollgate.io/match-pre-release"

SemverLevel = Literal["all", "major", "minor", "patch"]


class Policy(Protocol):
    name: str

    def should_update(self, current: str, new: str) -> bool: ...

    def filter(self, tags: list[str]) -> list[str]: ...


@dataclass(frozen=True)
class NeverPolicy:
    name: str = "never"

    def should_update(self, current: str, new: str) -> bool:
        return False

    def filter(self, tags: list[str]) -> list[str]:
        return []


@dataclass(frozen=True)
class SemverPolicy:
    """Semantic version policy.

    Attributes:
        level: "all", "major", "minor" or "patch".
        match_prerelease: Require the new tag to stay on the current tag's
            prerelease channel. Ignored by "all".

    """

    level: SemverLevel
    match_prerelease: bool = True

    @property
    def name(self) -> str:
        return self.level

    def should_update(self, current: str, new: str) -> bool:
        """Decide whether current should move to new.

        A workload running "latest" always updates. The new tag must have at
        least major and minor components.
        """
        if current == "latest":
            return True

        if len(new.split(".", 2)) not in (2, 3):
            return False

        current_v = parse_semver(current)
        new_v = parse_semver(new)
        if current_v is None or new_v is None:
            return False

        if (
            current_v.prerelease != new_v.prerelease
            and self.level != "all"
            and self.match_prerelease
        ):
            return False

        if compare_semver(current_v, new_v) >= 0:
            return False

        if self.level == "minor":
            return new_v.major == current_v.major
        if self.level == "patch":
            return new_v.major == current_v.major and new_v.minor == current_v.minor
        return True

    def filter(self, tags: list[str]) -> list[str]:
        """Semver tags with at least two components, newest first."""
        versions = []
        for tag in tags:
            if len(tag.split(".", 2)) < 2:
                continue
            version = parse_semver(tag)
            if version is not None:
                versions.append(version)
        versions.sort(reverse=True)
        return [v.original for v in versions]


@dataclass(frozen=True)
class ForcePolicy:
    match_tag: bool = False
    name: str = "force"

    def should_update(self, current: str, new: str) -> bool:
        if self.match_tag and current != new:
            return False
        return True

    def filter(self, tags: list[str]) -> list[str]:
        return list(tags)


@dataclass(frozen=True)
class GlobPolicy:
    """Shell-style pattern policy, e.g. "glob:build-*"."""

    pattern: str

    @property
    def name(self) -> str:
        return f"glob:{self.pattern}"

    def should_update(self, current: str, new: str) -> bool:
        return fnmatch.fnmatchcase(new, self.pattern) and new > current

    def filter(self, tags: list[str]) -> list[str]:
        return sorted(
            (t for t in tags if fnmatch.fnmatchcase(t, self.pattern)), reverse=True
        )


@dataclass(frozen=True)
class RegexpPolicy:
    """Regular expression policy, e.g. "regexp:^release-[0-9]+$"."""

    pattern: str

    def __post_init__(self) -> None:
        # Fail at construction time for invalid expressions.
        re.compile(self.pattern)

    @property
    def name(self) -> str:
        return f"regexp:{self.pattern}"

    def should_update(self, current: str, new: str) -> bool:
        return re.search(self.pattern, new) is not None and new > current

    def filter(self, tags: list[str]) -> list[str]:
        return sorted((t for t in tags if re.search(self.pattern, t)), reverse=True)


def get_policy(
    name: str,
    *,
    match_tag: bool = False,
    match_prerelease: bool = True,
    logger: Logger | None = None,
) -> Policy:
    """Build a policy from its configured name.

    Unknown names and invalid patterns yield NeverPolicy.
    """
    log = logger or SilentLogger()
    name = (name or "").strip()

    if name.startswith("glob:"):
        pattern = name[len("glob:") :]
        if not pattern or ":" in pattern:
            log.warning("POLICY", f"invalid glob policy {name!r}")
            return NeverPolicy()
        return GlobPolicy(pattern)

    if name.startswith("regexp:"):
        try:
            return RegexpPolicy(name[len("regexp:") :])
        except re.error as err:
            log.warning("POLICY", f"invalid regexp policy {name!r}: {err}")
            return NeverPolicy()

    if name in ("all", "major", "minor", "patch"):
        return SemverPolicy(level=name, match_prerelease=match_prerelease)
    if name == "force":
        return ForcePolicy(match_tag=match_tag)
    if name not in ("", "never"):
        log.warning("POLICY", f"unknown policy {name!r}, treating as 'never'")
    return NeverPolicy()


def policy_from_labels(
    labels: dict[str, str] | None,
    annotations: dict[str, str] | None,
    logger: Logger | None = None,
) -> Policy:
    """Read a workload's policy, preferring annotations over labels.

    The match-tag and match-pre-release options are read from the same
    mapping the policy came from. match-pre-release defaults to true.
    """
    for source in (annotations or {}, labels or {}):
        if POLICY_KEY in source:
            return get_policy(
                source[POLICY_KEY],
                match_tag=source.get(MATCH_TAG_KEY) == "true",
                match_prerelease=source.get(MATCH_PRERELEASE_KEY, "true") == "true",
                logger=logger,
            )
    return NeverPolicy()
