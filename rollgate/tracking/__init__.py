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

"""Version tracking for rollgate.

Keeps, per base image name, the plain release line and one latest tag per
prerelease channel in a single record, so eligibility checks can ask "is
this tag newer than the channel's current tag" without rescanning history.

Public API:

- TrackedImage: One entry of a tracked-image set
- merge: Merge one observation into a tracked-image set
- track_images: Fold many observations into a tracked-image set
- lookup_semver_index: Find the semver-tracked entry for a base name
- is_newer_in_channel: Compare a tag against its channel's latest tag
"""

from .images import (
    TrackedImage,
    is_newer_in_channel,
    lookup_semver_index,
    merge,
    track_images,
)

__all__ = [
    "TrackedImage",
    "is_newer_in_channel",
    "lookup_semver_index",
    "merge",
    "track_images",
]
