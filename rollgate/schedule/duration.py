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

"""Duration strings such as "1h30m", "90s" or "1.5h".

Grammar: an optional sign followed by one or more ``<number><unit>`` pairs.
Numbers may carry a decimal fraction. Units are ``ns``, ``us`` (or ``µs``),
``ms``, ``s``, ``m`` and ``h``. The bare string "0" is also accepted.

Durations are held as ``datetime.timedelta``, so anything finer than a
microsecond is truncated.
"""

from __future__ import annotations

from datetime import timedelta
from fractions import Fraction
import re

from rollgate.exceptions import ScheduleError

_UNIT_NANOS: dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # micro sign
    "μs": 1_000,  # greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_PART_RE = re.compile(r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """Parse a duration string.

    Args:
        value: Duration such as "30m", "1h15m", "1.5h" or "-2s".

    Returns:
        The duration as a timedelta.

    Raises:
        ScheduleError: If the string is empty, has no unit, or uses an
            unknown unit.

    Example:
        Parse a maintenance window length:
            ```python
            parse_duration("1h30m")  # timedelta(hours=1, minutes=30)
            ```

    """
    text = (value or "").strip()
    if not text:
        raise ScheduleError("invalid duration: empty string")

    sign = 1
    body = text
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]

    if body == "0":
        return timedelta(0)
    if not body:
        raise ScheduleError(f"invalid duration {value!r}")

    total = Fraction(0)
    pos = 0
    while pos < len(body):
        m = _PART_RE.match(body, pos)
        if not m or not any(ch.isdigit() for ch in m.group(1)):
            raise ScheduleError(f"invalid duration {value!r}")
        total += Fraction(m.group(1)) * _UNIT_NANOS[m.group(2)]
        pos = m.end()

    return timedelta(microseconds=sign * int(total // 1000))


def _with_fraction(value: int, unit: int) -> str:
    """Render value/unit with the shortest exact decimal fraction."""
    whole, rem = divmod(value, unit)
    if not rem:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{str(rem).zfill(digits).rstrip('0')}"


def format_duration(value: timedelta) -> str:
    """Render a timedelta in the duration grammar.

    The output always parses back to the same timedelta. Durations of a
    second or more use ``h``/``m``/``s`` ("1h30m0s", "1m30s", "1.5s");
    shorter ones use ``ms`` or ``µs``; zero is "0s".
    """
    micros = (value.days * 86400 + value.seconds) * 1_000_000 + value.microseconds
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_with_fraction(micros, 1_000)}ms"

    seconds, frac = divmod(micros, 1_000_000)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)

    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    out += _with_fraction(seconds * 1_000_000 + frac, 1_000_000) + "s"
    return out
