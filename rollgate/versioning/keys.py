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

"""Core tag comparison utilities for rollgate.

This module is format-agnostic: it does NOT talk to registries.
It only parses and compares image tags consistently across providers.

Two comparison modes exist:

- Strict semver (parse_semver, compare_semver): used wherever a tag must be
  recognised as a semantic version at all, e.g. by the version tracker and
  the semver update policies. Accepts an optional "v" prefix and partial
  "X" / "X.Y" versions, like most registry tooling does.
- Robust ordering (compare_any, is_newer_any): never fails. Semver-looking
  tags are ordered by release tuple and prerelease rank; anything else falls
  back to plain string comparison (build IDs, dates, "latest").
"""

from __future__ import annotations

from dataclasses import dataclass
import re

# ----------------------------
# Strict semver
# ----------------------------

_SEMVER_RE = re.compile(
    r"^v?(?P<major>[0-9]+)(?:\.(?P<minor>[0-9]+))?(?:\.(?P<patch>[0-9]+))?"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<meta>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


@dataclass(frozen=True)
class SemVer:
    """A parsed semantic version.

    Attributes:
        major: Major component.
        minor: Minor component (0 when omitted).
        patch: Patch component (0 when omitted).
        prerelease: Prerelease label without the leading "-" (e.g. "dev",
            "rc.1"); "" for a release. This is the tag's channel.
        metadata: Build metadata without the leading "+"; ignored in ordering.
        original: The tag exactly as parsed.

    """

    major: int
    minor: int
    patch: int
    prerelease: str = ""
    metadata: str = ""
    original: str = ""

    @property
    def core(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __lt__(self, other: SemVer) -> bool:
        return compare_semver(self, other) < 0

    def __le__(self, other: SemVer) -> bool:
        return compare_semver(self, other) <= 0

    def __gt__(self, other: SemVer) -> bool:
        return compare_semver(self, other) > 0

    def __ge__(self, other: SemVer) -> bool:
        return compare_semver(self, other) >= 0

    def __str__(self) -> str:
        return self.original or f"{self.major}.{self.minor}.{self.patch}"


def parse_semver(tag: str | None) -> SemVer | None:
    """Parse a tag as a semantic version.

    Returns:
        SemVer, or None when the tag is not a semantic version (e.g.
        "latest", "build-42", "alpine").

    """
    if not tag:
        return None
    m = _SEMVER_RE.match(tag.strip())
    if not m:
        return None
    return SemVer(
        major=int(m.group("major")),
        minor=int(m.group("minor") or 0),
        patch=int(m.group("patch") or 0),
        prerelease=m.group("pre") or "",
        metadata=m.group("meta") or "",
        original=tag,
    )


def channel_of(tag: str | None) -> str | None:
    """Return the prerelease channel of a semver tag.

    Returns:
        The prerelease label ("" for plain releases), or None when the tag
        is not semver.

    """
    v = parse_semver(tag)
    return None if v is None else v.prerelease


def _compare_prerelease(a: str, b: str) -> int:
    """Order prerelease labels per SemVer 2.0 section 11.

    A release ("") sorts after any prerelease. Dot-separated identifiers are
    compared left to right: numeric ones numerically and before alphanumeric
    ones, alphanumeric ones in ASCII order; a shorter list that is a prefix
    of a longer one sorts first.
    """
    if a == b:
        return 0
    if not a:
        return 1
    if not b:
        return -1

    left, right = a.split("."), b.split(".")
    for x, y in zip(left, right):
        if x == y:
            continue
        x_num, y_num = x.isdigit(), y.isdigit()
        if x_num and y_num:
            return (int(x) > int(y)) - (int(x) < int(y))
        if x_num:
            return -1
        if y_num:
            return 1
        return (x > y) - (x < y)
    return (len(left) > len(right)) - (len(left) < len(right))


def compare_semver(a: SemVer, b: SemVer) -> int:
    """Compare two SemVer values. Returns -1, 0 or 1."""
    if a.core != b.core:
        return (a.core > b.core) - (a.core < b.core)
    return _compare_prerelease(a.prerelease, b.prerelease)


# ----------------------------
# Robust ordering
# ----------------------------

# Known prerelease tag ordering (lower = older)
_PRE_TAG_RANK: dict[str, float] = {
    "dev": 0,
    "snapshot": 0,
    "nightly": 0,
    "alpha": 1,
    "a": 1,
    "pre": 1,
    "preview": 1,
    "beta": 2,
    "b": 2,
    "rc": 3,
}
_UNKNOWN_PRE_RANK = 2.5  # unknown prerelease tags sort between beta and rc
_RELEASE_RANK = 4.0

_RELEASE_PREFIX = re.compile(r"^\s*v?(\d+(?:[._]\d+)*)(.*)$", re.IGNORECASE)


def _pre_tokens(pre: str) -> tuple[tuple[int, object], ...]:
    """Split a prerelease suffix into numeric-aware tokens.

    Numeric tokens are encoded as (0, int) and sort before text tokens,
    which are encoded as (1, lowercased str).
    """
    out: list[tuple[int, object]] = []
    for t in re.split(r"[.\-_+]", pre):
        if not t:
            continue
        out.append((0, int(t)) if t.isdigit() else (1, t.lower()))
    return tuple(out)


def version_key_any(tag: str) -> tuple:
    """Compute a comparable key for any tag.

    Semver-looking tags produce ("semverish", release, rank, tokens) keys so
    "1.10.0" sorts after "1.9.0" and "1.0.0-rc.1" before "1.0.0". Tags
    without a numeric prefix fall back to ("text", raw).
    """
    m = _RELEASE_PREFIX.match(tag.split("+", 1)[0])
    if not m:
        return ("text", tag)

    release = tuple(int(p) for p in re.split(r"[._]", m.group(1)))
    release += (0,) * (3 - len(release))
    suffix = m.group(2).lstrip("-._")
    if not suffix:
        return ("semverish", release, _RELEASE_RANK, ())

    rank = _UNKNOWN_PRE_RANK
    label = re.match(r"[A-Za-z]+", suffix)
    if label:
        rank = _PRE_TAG_RANK.get(label.group(0).lower(), _UNKNOWN_PRE_RANK)
    return ("semverish", release, rank, _pre_tokens(suffix))


def compare_any(a: str, b: str) -> int:
    """Compare two tags. Returns -1 if a < b, 0 if equal, 1 if a > b.

    Both tags parsing as strict semver are compared with SemVer precedence.
    Otherwise the robust key is used; a semver-looking tag always sorts
    after a purely textual one.
    """
    sa, sb = parse_semver(a), parse_semver(b)
    if sa is not None and sb is not None:
        return compare_semver(sa, sb)

    ka, kb = version_key_any(a), version_key_any(b)
    if ka[0] != kb[0]:
        return 1 if ka[0] == "semverish" else -1
    return (ka > kb) - (ka < kb)


def is_newer_any(remote: str, current: str | None) -> bool:
    """Decide if 'remote' should be considered newer than 'current'.

    Returns True iff remote > current; any tag is newer than None.
    """
    if current is None:
        return True
    return compare_any(remote, current) > 0
