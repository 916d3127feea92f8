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

"""JSON state-file cache for rollgate.

Persists cache entries in a single JSON file so approvals survive between
CLI invocations. The file layout is:

    {
      "metadata": {"rollgate_version": "...", "schema_version": "1",
                   "last_updated": "..."},
      "entries": {
        "approvals/kubernetes/default/web:1.2.0": {
          "value": "<base64>",
          "expires_at": "2025-01-02T03:04:05+00:00"
        }
      }
    }

Every operation re-reads the file, so several processes can share it as long
as they do not write at the same moment. Within one process, operations are
serialized with a lock.

Example:
    Low-level API with functions:
        ```python
        from pathlib import Path
        from rollgate.cache.file import load_state, save_state

        state = load_state(Path("state/approvals.json"))
        # ... modify state dict ...
        save_state(state, Path("state/approvals.json"))
        ```

"""

from __future__ import annotations

import base64
import binascii
from datetime import UTC, datetime, timedelta
import json
from pathlib import Path
import threading
from typing import Any

from rollgate import __version__
from rollgate.cache.base import Clock, utc_now
from rollgate.exceptions import NotFoundError, SerializationError
from rollgate.logging import Logger, SilentLogger


class FileCache:
    """Cache backed by a JSON state file.

    Expired entries are removed from the file whenever it is read. Entries
    whose stored value cannot be decoded are skipped by ``list`` with a
    warning; ``get`` on such a key raises SerializationError.

    Attributes:
        state_file: Path to the JSON state file. Created on first write.

    """

    def __init__(
        self,
        state_file: Path,
        clock: Clock | None = None,
        logger: Logger | None = None,
    ):
        """Initialize the cache.

        Args:
            state_file: Path to JSON state file. Created if it doesn't exist.
            clock: Source of the current time, used for TTL handling.
            logger: Receives warnings about skipped entries.

        """
        self.state_file = Path(state_file)
        self._clock = clock or utc_now
        self._logger = logger or SilentLogger()
        self._lock = threading.Lock()

    def put(self, key: str, value: bytes, ttl: timedelta | None = None) -> None:
        expires_at = (self._clock() + ttl).isoformat() if ttl is not None else None
        with self._lock:
            state = self._load_live()
            state["entries"][key] = {
                "value": base64.b64encode(value).decode("ascii"),
                "expires_at": expires_at,
            }
            self._save(state)

    def get(self, key: str) -> bytes:
        with self._lock:
            entries = self._load_live()["entries"]
        if key not in entries:
            raise NotFoundError(f"key not found: {key}")
        return self._decode(key, entries[key])

    def delete(self, key: str) -> None:
        with self._lock:
            state = self._load_live()
            if state["entries"].pop(key, None) is not None:
                self._save(state)

    def list(self, prefix: str = "") -> dict[str, bytes]:
        with self._lock:
            entries = self._load_live()["entries"]
        out: dict[str, bytes] = {}
        for key, entry in entries.items():
            if not key.startswith(prefix):
                continue
            try:
                out[key] = self._decode(key, entry)
            except SerializationError as err:
                self._logger.warning("CACHE", f"skipping {err}")
        return out

    def _decode(self, key: str, entry: Any) -> bytes:
        try:
            return base64.b64decode(entry["value"], validate=True)
        except (KeyError, TypeError, binascii.Error) as err:
            raise SerializationError(
                f"corrupted entry {key!r} in {self.state_file}"
            ) from err

    def _load_live(self) -> dict[str, Any]:
        """Load state and drop expired entries from disk. Caller holds the lock."""
        state = self._load()
        now = self._clock()
        expired = [
            key for key, entry in state["entries"].items() if _is_expired(entry, now)
        ]
        if expired:
            for key in expired:
                del state["entries"][key]
            self._save(state)
        return state

    def _load(self) -> dict[str, Any]:
        """Load state, backing up a corrupted file.

        Raises:
            SerializationError: If the file exists but is not valid JSON. The
                bad file is renamed to ``*.json.backup`` first.

        """
        try:
            state = load_state(self.state_file)
        except FileNotFoundError:
            return create_default_state()
        except json.JSONDecodeError as err:
            backup = self.state_file.with_suffix(".json.backup")
            self.state_file.rename(backup)
            raise SerializationError(
                f"Corrupted state file backed up to {backup}."
            ) from err

        state.setdefault("metadata", {})
        state.setdefault("entries", {})
        return state

    def _save(self, state: dict[str, Any]) -> None:
        state["metadata"]["last_updated"] = datetime.now(UTC).isoformat()
        save_state(state, self.state_file)


def create_default_state() -> dict[str, Any]:
    """Create a default empty state structure."""
    return {
        "metadata": {
            "rollgate_version": __version__,
            "schema_version": "1",
            "last_updated": datetime.now(UTC).isoformat(),
        },
        "entries": {},
    }


def load_state(state_file: Path) -> dict[str, Any]:
    """Load state from JSON file.

    Raises:
        FileNotFoundError: If state file doesn't exist.
        json.JSONDecodeError: If file contains invalid JSON.
        OSError: If file cannot be read due to permissions.

    """
    with open(state_file, encoding="utf-8") as f:
        return json.load(f)


def save_state(state: dict[str, Any], state_file: Path) -> None:
    """Save state to JSON file with pretty-printing.

    Creates parent directories if needed. Uses 2-space indentation and
    sorted keys for consistent diffs, plus a trailing newline.

    Raises:
        OSError: If file cannot be written due to permissions.

    """
    state_file.parent.mkdir(parents=True, exist_ok=True)

    with open(state_file, "w", encoding="utf-8") as f:
        json.dump(state, f, indent=2, sort_keys=True)
        f.write("\n")


def _is_expired(entry: Any, now: datetime) -> bool:
    expires_at = entry.get("expires_at") if isinstance(entry, dict) else None
    if not expires_at:
        return False
    try:
        return now >= datetime.fromisoformat(expires_at)
    except (TypeError, ValueError):
        return False
