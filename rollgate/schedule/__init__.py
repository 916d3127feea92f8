"""
Maintenance window scheduling for rollgate.

Modules
-------
duration : module
    Parse and format duration strings ("1h30m", "90s").
cron : module
    Cron and fixed-interval rules backed by croniter.
evaluator : module
    Parse schedule annotations and decide whether updates are allowed.

Public API
----------
UpdateSchedule : dataclass
    Ordered maintenance windows.
Window : dataclass
    A single cron rule with its window duration.
parse_schedule : function
    Parse a ``CRON|DURATION[,...]`` annotation.
find_previous_occurrence : function
    Latest occurrence of a rule at or before an instant.
is_update_allowed : function
    Window and cooldown check across all windows.
parse_rule : function
    Parse a cron expression or "@every" interval.
parse_duration, format_duration : function
    Duration string conversion.
"""

from .cron import CronRule, EveryRule, Rule, parse_rule
from .duration import format_duration, parse_duration
from .evaluator import (
    LOOKBACK,
    MAX_SEARCH_ITERATIONS,
    UpdateSchedule,
    Window,
    find_previous_occurrence,
    is_update_allowed,
    parse_schedule,
)

__all__ = [
    "LOOKBACK",
    "MAX_SEARCH_ITERATIONS",
    "CronRule",
    "EveryRule",
    "Rule",
    "UpdateSchedule",
    "Window",
    "find_previous_occurrence",
    "format_duration",
    "is_update_allowed",
    "parse_duration",
    "parse_rule",
    "parse_schedule",
]
