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

"""Byte encodings for approval records.

The approval manager stores records in a byte-valued cache, so it needs a
serializer with ``encode(approval) -> bytes`` and ``decode(bytes) ->
Approval``. JSON is the only encoding shipped.
"""

from __future__ import annotations

import json
from typing import Protocol

from rollgate.exceptions import RollgateError, SerializationError
from rollgate.models import Approval


class Serializer(Protocol):
    def encode(self, approval: Approval) -> bytes: ...

    def decode(self, data: bytes) -> Approval: ...


class JSONSerializer:
    """Encode approvals as UTF-8 JSON using Approval.to_dict keys."""

    def encode(self, approval: Approval) -> bytes:
        try:
            return json.dumps(approval.to_dict(), sort_keys=True).encode("utf-8")
        except (TypeError, ValueError) as err:
            raise SerializationError(
                f"failed to encode approval {approval.identifier!r}: {err}"
            ) from err

    def decode(self, data: bytes) -> Approval:
        try:
            payload = json.loads(data)
            if not isinstance(payload, dict):
                raise TypeError(f"expected an object, got {type(payload).__name__}")
            return Approval.from_dict(payload)
        except (KeyError, TypeError, ValueError, RollgateError) as err:
            raise SerializationError(f"failed to decode approval: {err}") from err
