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

"""Tracked image bookkeeping for rollgate.

A tracked-image set holds one entry per watched image. For each base image
name there is at most one *semver-tracked* entry, which records:

- the most recently observed reference,
- the latest tag seen on every prerelease channel ("dev", "prod", ...),
- every semver tag merged into it, oldest first.

Images whose tag is not a semantic version ("latest", "build-42") are kept
as inert placeholder entries (``tags is None``). They are never merged into
and never modified.

All functions here are pure: inputs are never mutated, results are new
lists. They are safe to call from any number of threads.

Example:
    Fold observations into a tracked set:

        from rollgate.tracking import TrackedImage, merge

        tracked = []
        tracked = merge(tracked, TrackedImage.from_reference("app:1.2.3-prod"))
        tracked = merge(tracked, TrackedImage.from_reference("app:1.5.0-dev"))

        tracked[0].channel_tags  # {"prod": "1.2.3-prod", "dev": "1.5.0-dev"}
        tracked[0].tags          # ["1.2.3-prod", "1.5.0-dev"]

"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from rollgate.image import Reference, parse_reference
from rollgate.versioning import channel_of, compare_any, parse_semver


@dataclass
class TrackedImage:
    """One entry of a tracked-image set.

    Attributes:
        image: Most recently observed reference for this entry.
        channel_tags: Prerelease label -> latest tag seen on that label.
        tags: Every semver tag merged into this entry, oldest first. None
            marks an entry that is not semver-tracked.
        meta: Free-form metadata from the newest observation.
        provider: Name of the provider that reported the image.
        namespace: Namespace of the workload that runs the image.
        policy: Update policy name configured on that workload.

    """

    image: Reference
    channel_tags: dict[str, str] = field(default_factory=dict)
    tags: list[str] | None = None
    meta: dict[str, str] = field(default_factory=dict)
    provider: str = ""
    namespace: str = ""
    policy: str = ""

    @classmethod
    def from_reference(
        cls,
        image: Reference | str,
        *,
        meta: dict[str, str] | None = None,
        provider: str = "",
        namespace: str = "",
        policy: str = "",
    ) -> TrackedImage:
        """Build a single observation of an image.

        A semver tag yields ``tags == [tag]`` and, when the tag carries a
        prerelease label, a one-entry channel map. Any other tag yields a
        placeholder with ``tags is None``.
        """
        ref = parse_reference(image) if isinstance(image, str) else image

        tags: list[str] | None = None
        channels: dict[str, str] = {}
        version = parse_semver(ref.tag)
        if version is not None:
            tags = [ref.tag]
            if version.prerelease:
                channels[version.prerelease] = ref.tag

        return cls(
            image=ref,
            channel_tags=channels,
            tags=tags,
            meta=dict(meta or {}),
            provider=provider,
            namespace=namespace,
            policy=policy,
        )

    @property
    def base_name(self) -> str:
        return self.image.base_name

    @property
    def semver_tracked(self) -> bool:
        return self.tags is not None

    def latest_for_channel(self, channel: str) -> str | None:
        """Latest known tag on a channel.

        For a named channel this is the channel map entry. For the release
        channel ("") it is the highest release tag merged so far.
        """
        if channel:
            return self.channel_tags.get(channel)

        releases = [t for t in self.tags or [] if channel_of(t) == ""]
        if not releases:
            return None
        best = releases[0]
        for tag in releases[1:]:
            if compare_any(tag, best) > 0:
                best = tag
        return best

    def __str__(self) -> str:
        return (
            f"namespace:{self.namespace},image:{self.image.name},"
            f"provider:{self.provider},policy:{self.policy},"
            f"channels:{self.channel_tags},tags:{self.tags}"
        )


def lookup_semver_index(entries: list[TrackedImage], new: TrackedImage) -> int | None:
    """Index of the semver-tracked entry sharing new's base name, if any."""
    for idx, entry in enumerate(entries):
        if entry.tags is not None and entry.base_name == new.base_name:
            return idx
    return None


def merge(entries: list[TrackedImage], new: TrackedImage) -> list[TrackedImage]:
    """Merge one observation into a tracked-image set.

    If a semver-tracked entry with the same base name exists, it is replaced
    in place by an entry whose image is the new reference, whose channel map
    is the union of both maps (new values win), whose tags are the existing
    tags followed by the new ones, and whose metadata is the new metadata.
    Otherwise the observation is appended.

    An observation that is not semver-tracked itself is always appended as
    a separate placeholder.

    Args:
        entries: Current tracked-image set (not modified).
        new: The observation to merge.

    Returns:
        A new list with the same length (merge) or one more entry (append).

    """
    result = list(entries)
    if new.tags is None:
        result.append(new)
        return result

    idx = lookup_semver_index(entries, new)
    if idx is None:
        result.append(new)
        return result

    target = entries[idx]
    result[idx] = TrackedImage(
        image=new.image,
        channel_tags={**target.channel_tags, **new.channel_tags},
        tags=list(target.tags or []) + list(new.tags),
        meta=dict(new.meta),
        provider=new.provider or target.provider,
        namespace=new.namespace or target.namespace,
        policy=new.policy or target.policy,
    )
    return result


def track_images(observations: Iterable[TrackedImage]) -> list[TrackedImage]:
    """Fold a sequence of observations into a tracked-image set, in order."""
    tracked: list[TrackedImage] = []
    for observation in observations:
        tracked = merge(tracked, observation)
    return tracked


def is_newer_in_channel(entry: TrackedImage, tag: str) -> bool:
    """Check whether tag is newer than the entry's latest tag on its channel.

    Returns False for tags that are not semver. A channel the entry has not
    seen yet accepts any tag.
    """
    channel = channel_of(tag)
    if channel is None:
        return False
    latest = entry.latest_for_channel(channel)
    if latest is None:
        return True
    return compare_any(tag, latest) > 0
