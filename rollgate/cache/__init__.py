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

"""Approval persistence backends for rollgate.

Public API:

- Cache: Protocol every backend implements
- MemoryCache: Thread-safe in-process cache with per-entry TTL
- FileCache: JSON state-file cache used by the CLI
- load_state: Load a state file
- save_state: Save a state file with pretty-printing

Example:
    Share a cache between an approval manager and a test:

        from rollgate.cache import MemoryCache
        from rollgate.approvals import ApprovalManager

        cache = MemoryCache()
        manager = ApprovalManager(cache)

"""

from .base import Cache, Clock, utc_now
from .file import FileCache, load_state, save_state
from .memory import MemoryCache

__all__ = [
    "Cache",
    "Clock",
    "FileCache",
    "MemoryCache",
    "load_state",
    "save_state",
    "utc_now",
]
