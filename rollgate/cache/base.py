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

"""Cache contract shared by every approval store.

A cache is a flat byte-valued key/value store with optional per-entry TTL.
Keys are plain strings; callers build hierarchical keys with "/" separators
and use ``list(prefix)`` to enumerate one level.

Implementations must be safe to call from several threads at once.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock for caches and the approval manager."""
    return datetime.now(UTC)


class Cache(Protocol):
    """Protocol for approval persistence backends."""

    def put(self, key: str, value: bytes, ttl: timedelta | None = None) -> None:
        """Store value under key, replacing any previous value.

        Args:
            key: Entry key.
            value: Raw bytes to store.
            ttl: Optional lifetime; the entry disappears once it elapses.
        """
        ...

    def get(self, key: str) -> bytes:
        """Return the value stored under key.

        Raises:
            NotFoundError: If the key is missing or expired.
        """
        ...

    def delete(self, key: str) -> None:
        """Remove key. Removing a missing key is not an error."""
        ...

    def list(self, prefix: str = "") -> dict[str, bytes]:
        """Return every live entry whose key starts with prefix."""
        ...
