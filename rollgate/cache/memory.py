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

"""In-memory cache with per-entry TTL."""

from __future__ import annotations

from datetime import datetime, timedelta
import threading

from rollgate.cache.base import Clock, utc_now
from rollgate.exceptions import NotFoundError


class MemoryCache:
    """Thread-safe dictionary cache.

    Expired entries are dropped lazily, whenever they are read or listed.

    Example:
        Store and read back a value:
            ```python
            cache = MemoryCache()
            cache.put("approvals/kubernetes/default/web:1.2.0", b"{}")
            cache.get("approvals/kubernetes/default/web:1.2.0")  # b"{}"
            ```

    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[bytes, datetime | None]] = {}

    def put(self, key: str, value: bytes, ttl: timedelta | None = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._entries[key] = (bytes(value), expires_at)

    def get(self, key: str) -> bytes:
        with self._lock:
            entry = self._live(key, self._clock())
        if entry is None:
            raise NotFoundError(f"key not found: {key}")
        return entry

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def list(self, prefix: str = "") -> dict[str, bytes]:
        now = self._clock()
        out: dict[str, bytes] = {}
        with self._lock:
            for key in [k for k in self._entries if k.startswith(prefix)]:
                value = self._live(key, now)
                if value is not None:
                    out[key] = value
        return out

    def _live(self, key: str, now: datetime) -> bytes | None:
        """Return key's value, evicting it if expired. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and now >= expires_at:
            del self._entries[key]
            return None
        return value
