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

"""Exception hierarchy for rollgate.

This module defines a custom exception hierarchy that allows library users
to distinguish between different types of errors:

- ConfigError: Configuration-related errors (YAML parse, invalid values)
- ImageReferenceError: Malformed container image references
- ScheduleError: Malformed maintenance-window annotations
- ApprovalError: Approval state machine violations (duplicate records)
- NotFoundError: Missing cache entries or approval records
- SerializationError: Approval records that cannot be encoded or decoded
- NetworkError: Resubmission webhook failures

All exceptions inherit from RollgateError, allowing users to catch all
rollgate errors with a single except clause if needed.

Example:
    Catching specific error types:
        ```python
        from rollgate.exceptions import AlreadyExistsError, NotFoundError

        try:
            manager.create(approval)
        except AlreadyExistsError:
            pass  # already tracked

        try:
            approval = manager.get("kubernetes", "default/web:1.2.0")
        except NotFoundError as e:
            print(f"No such approval: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "RollgateError",
    "ConfigError",
    "ImageReferenceError",
    "ScheduleError",
    "ScheduleConvergenceError",
    "ApprovalError",
    "AlreadyExistsError",
    "NotFoundError",
    "SerializationError",
    "NetworkError",
]


class RollgateError(Exception):
    """Base exception for all rollgate errors."""

    pass


class ConfigError(RollgateError):
    """Raised for configuration-related errors.

    This exception is raised when there are problems with:

    - YAML parsing (syntax errors, invalid structure)
    - Missing or invalid configuration fields
    - Invalid numeric or duration settings
    """

    pass


class ImageReferenceError(RollgateError):
    """Raised when an image reference cannot be parsed."""

    pass


class ScheduleError(RollgateError):
    """Raised for malformed update schedule annotations.

    Covers pieces that are not of the form ``CRON|DURATION``, cron
    expressions rejected by the cron parser, and invalid duration strings.
    An empty annotation is not an error.
    """

    pass


class ScheduleConvergenceError(ScheduleError):
    """Raised when the previous-occurrence search exhausts its iterations.

    Callers evaluating a multi-window schedule treat this as "no previous
    occurrence" for that window and keep evaluating the others.
    """

    pass


class ApprovalError(RollgateError):
    """Base class for approval state machine errors."""

    pass


class AlreadyExistsError(ApprovalError):
    """Raised by ApprovalManager.create when the key is already present."""

    pass


class NotFoundError(RollgateError):
    """Raised when a cache key or approval record does not exist."""

    pass


class SerializationError(RollgateError):
    """Raised when an approval record cannot be encoded or decoded."""

    pass


class NetworkError(RollgateError):
    """Raised for network-related errors.

    This exception is raised when there are problems with:

    - Resubmitting an event to the native webhook endpoint
    - HTTP errors and connection timeouts on that request
    """

    pass
