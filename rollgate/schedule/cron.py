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

"""Cron rules for maintenance windows.

Every rule exposes a single operation, ``next(after)``, returning the first
occurrence strictly after ``after`` at one-second resolution, or None when
there is none.

Supported expressions:

- Six fields, seconds first: "0 30 2 * * *" (02:30:00 every day).
- Five standard fields: "30 2 * * *".
- Descriptors understood by croniter: "@hourly", "@daily", "@weekly", ...
- Fixed intervals: "@every 1h30m".

Field matching, ranges, steps and names are delegated to croniter. This
module only normalizes the field order and the time resolution.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol

from croniter import CroniterBadDateError, CroniterError, croniter

from rollgate.exceptions import ScheduleError
from rollgate.schedule.duration import parse_duration

_EVERY_PREFIX = "@every"


class Rule(Protocol):
    """Anything that can compute the next occurrence after an instant."""

    def next(self, after: datetime) -> datetime | None: ...


def _to_croniter(expression: str) -> str:
    """Rewrite a seconds-first expression into croniter's field order.

    croniter expects an optional seconds field *after* day-of-week.
    """
    fields = expression.split()
    if len(fields) == 6:
        fields = fields[1:] + fields[:1]
    elif len(fields) != 5 and not expression.startswith("@"):
        raise ScheduleError(
            f"invalid cron expression {expression!r}: expected 5 or 6 fields, "
            f"got {len(fields)}"
        )
    return " ".join(fields)


class CronRule:
    """A cron expression evaluated with croniter.

    Attributes:
        expression: The expression as written by the user.

    """

    def __init__(self, expression: str):
        self.expression = expression.strip()
        if not self.expression:
            raise ScheduleError("invalid cron expression: empty string")
        self._expr = _to_croniter(self.expression)
        try:
            croniter(self._expr, datetime(2000, 1, 1))
        except (CroniterError, ValueError, KeyError) as err:
            raise ScheduleError(
                f"invalid cron expression {self.expression!r}: {err}"
            ) from err

    def next(self, after: datetime) -> datetime | None:
        # Whole seconds: croniter then yields the first match strictly after.
        start = after.replace(microsecond=0)
        try:
            return croniter(self._expr, start).get_next(datetime)
        except CroniterBadDateError:
            return None

    def __repr__(self) -> str:
        return f"CronRule({self.expression!r})"


class EveryRule:
    """A fixed interval, "@every <duration>".

    Intervals are rounded down to whole seconds, with a floor of one second.
    """

    def __init__(self, interval: timedelta):
        seconds = max(int(interval.total_seconds()), 1)
        self.interval = timedelta(seconds=seconds)

    def next(self, after: datetime) -> datetime | None:
        return after.replace(microsecond=0) + self.interval

    def __repr__(self) -> str:
        return f"EveryRule({self.interval!r})"


def parse_rule(expression: str) -> CronRule | EveryRule:
    """Parse a cron expression or "@every <duration>" into a rule.

    Raises:
        ScheduleError: If the expression is malformed.

    """
    text = (expression or "").strip()
    if text.startswith(_EVERY_PREFIX + " "):
        interval = parse_duration(text[len(_EVERY_PREFIX) :])
        if interval <= timedelta(0):
            raise ScheduleError(f"invalid interval in {expression!r}")
        return EveryRule(interval)
    return CronRule(text)
