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

"""Maintenance window evaluation for rollgate.

A workload opts into maintenance windows with an annotation listing one or
more ``CRON|DURATION`` pairs separated by commas::

    rollgate.io/update-schedule: "0 0 2 * * *|2h, @every 12h|15m"

Each pair opens a window at every cron occurrence that stays open for the
duration. The same duration doubles as a cooldown: a window is skipped while
less than ``duration`` has passed since the last applied update. An update is
allowed when any window allows it.

Cron libraries only answer "when is the next occurrence". The previous
occurrence is found by bisecting probe points over a one-week lookback and
asking for the next occurrence after each probe.

Everything here is pure: callers pass ``now`` explicitly.

Example:
    Check whether a workload may be updated right now:

        from datetime import UTC, datetime
        from rollgate.schedule import is_update_allowed, parse_schedule

        schedule = parse_schedule("0 0 * * * *|10m")
        is_update_allowed(schedule, last_update=None, now=datetime.now(UTC))

"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from rollgate.exceptions import ScheduleConvergenceError, ScheduleError
from rollgate.logging import Logger, SilentLogger
from rollgate.schedule.cron import Rule, parse_rule
from rollgate.schedule.duration import parse_duration

LOOKBACK = timedelta(days=7)
RESOLUTION = timedelta(minutes=1)
MAX_SEARCH_ITERATIONS = 30


@dataclass(frozen=True)
class Window:
    """One ``CRON|DURATION`` pair.

    Attributes:
        rule: Cron rule that opens the window.
        duration: How long the window stays open; also the cooldown.
        source: The piece of the annotation this window came from.

    """

    rule: Rule
    duration: timedelta
    source: str = ""


@dataclass(frozen=True)
class UpdateSchedule:
    """Ordered maintenance windows parsed from an annotation."""

    windows: tuple[Window, ...]

    def __iter__(self):
        return iter(self.windows)

    def __len__(self) -> int:
        return len(self.windows)


def parse_schedule(annotation: str | None) -> UpdateSchedule | None:
    """Parse a maintenance window annotation.

    Args:
        annotation: Comma-separated ``CRON|DURATION`` pairs. Blank pieces are
            ignored. An empty duration means zero.

    Returns:
        The parsed schedule, or None when the annotation holds no windows
        (meaning updates are always allowed).

    Raises:
        ScheduleError: If a piece does not have exactly one "|", or its cron
            expression or duration is invalid.

    """
    windows: list[Window] = []
    for piece in (annotation or "").split(","):
        piece = piece.strip()
        if not piece:
            continue

        parts = piece.split("|")
        if len(parts) != 2:
            raise ScheduleError(
                f"invalid schedule {piece!r}: expected CRON|DURATION"
            )
        cron_expr, duration_str = parts[0].strip(), parts[1].strip()

        rule = parse_rule(cron_expr)
        duration = parse_duration(duration_str) if duration_str else timedelta(0)
        windows.append(Window(rule=rule, duration=duration, source=piece))

    if not windows:
        return None
    return UpdateSchedule(windows=tuple(windows))


def find_previous_occurrence(rule: Rule, now: datetime) -> datetime | None:
    """Find the latest occurrence of rule at or before now.

    Bisects probe points between ``now - LOOKBACK`` and ``now``. A probe whose
    next occurrence lands before ``now`` is a candidate and moves the search
    forward; one whose next occurrence is after ``now`` moves it back.

    Args:
        rule: Cron rule to search.
        now: Reference instant.

    Returns:
        ``now`` itself when an occurrence falls exactly on it, otherwise the
        best candidate found once the search interval drops below one minute.
        None when no occurrence was found.

    Raises:
        ScheduleConvergenceError: If the search did not settle within
            MAX_SEARCH_ITERATIONS probes.

    """
    lower = now - LOOKBACK
    upper = now
    current = now - timedelta(seconds=1)
    last_found: datetime | None = None

    for _ in range(MAX_SEARCH_ITERATIONS):
        candidate = rule.next(current)

        if candidate == now:
            return now

        if upper - lower < RESOLUTION:
            return last_found

        if candidate is None or candidate < now:
            if candidate is not None:
                last_found = candidate
            probe = lower + (upper - lower) / 2
            lower = current
            current = probe
        else:
            upper = current
            current = current - (current - lower) / 2

    raise ScheduleConvergenceError(
        f"previous occurrence search did not converge within "
        f"{MAX_SEARCH_ITERATIONS} iterations"
    )


def is_update_allowed(
    schedule: UpdateSchedule | None,
    last_update: datetime | None,
    now: datetime,
    logger: Logger | None = None,
) -> bool:
    """Decide whether an update may be applied at now.

    Args:
        schedule: Parsed schedule; None allows everything.
        last_update: When the workload was last updated, if known. A missing
            value never blocks on cooldown.
        now: Reference instant.
        logger: Optional logger for per-window diagnostics.

    Returns:
        True when at least one window is open and out of cooldown.

    """
    if schedule is None:
        return True

    log = logger or SilentLogger()

    for window in schedule:
        try:
            previous = find_previous_occurrence(window.rule, now)
        except ScheduleError as err:
            log.debug("SCHEDULE", f"{window.source}: {err}")
            continue
        if previous is None:
            log.debug("SCHEDULE", f"{window.source}: no occurrence in lookback")
            continue

        if last_update is not None and now - last_update < window.duration:
            log.debug("SCHEDULE", f"{window.source}: in cooldown")
            continue

        if now == previous or previous < now < previous + window.duration:
            log.verbose("SCHEDULE", f"{window.source}: window open since {previous}")
            return True

    return False
