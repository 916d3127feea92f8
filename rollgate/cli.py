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

"""Command-line interface for rollgate.

This module provides the main CLI entry point for the rollgate tool, offering
commands for checking maintenance windows, managing approvals and validating
configuration.

Commands:

    schedule: Evaluate a maintenance window annotation
    approvals: List, approve, reject, delete or expire approvals
    validate-config: Validate a rollgate YAML config file

Example:
    Check whether an update is allowed right now:
        ```bash
        $ rollgate schedule "0 0 2 * * *|2h"
        ```

    Check at a given instant, with a recent update:
        ```bash
        $ rollgate schedule "0 0 * * * *|10m" --now 2025-05-15T14:05:00+00:00 \\
            --last-update 2025-05-15T13:00:00+00:00
        ```

    Vote on a pending approval:
        ```bash
        $ rollgate approvals approve kubernetes default/web:1.3.0 --voter alice
        ```

Exit Codes:

- 0: Success
- 1: Error (configuration, schedule, approval or network failure)

Note:
    Approval commands operate on a JSON state file (default
    state/approvals.json). When a webhook URL is configured, approvals that
    reach quorum re-post their event to it.

"""

from __future__ import annotations

import argparse
from datetime import UTC, datetime
from pathlib import Path
import sys

from rollgate import __version__
from rollgate.approvals import Approval, ApprovalManager
from rollgate.cache import FileCache
from rollgate.config import GateSettings, load_effective_config, settings_from_config
from rollgate.exceptions import (
    ConfigError,
    NotFoundError,
    RollgateError,
    ScheduleError,
)
from rollgate.logging import Logger, get_logger
from rollgate.schedule import find_previous_occurrence, is_update_allowed, parse_schedule
from rollgate.triggers import WebhookSink


def _parse_instant(value: str | None) -> datetime | None:
    """Parse an ISO 8601 instant; naive values are taken as UTC."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _print_error(args: argparse.Namespace, err: Exception) -> None:
    print(f"Error: {err}")
    if getattr(args, "verbose", False) or getattr(args, "debug", False):
        import traceback

        traceback.print_exc()


def cmd_schedule(args: argparse.Namespace) -> int:
    """Handler for 'rollgate schedule' command.

    Parses a maintenance window annotation, shows the previous occurrence of
    every window and whether an update is allowed at the given instant.

    Args:
        args: Parsed command-line arguments containing the annotation and the
            optional --now / --last-update instants.

    Returns:
        Exit code (0 when the annotation is valid, 1 otherwise).

    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)

    try:
        now = _parse_instant(args.now) or datetime.now(UTC)
        last_update = _parse_instant(args.last_update)
    except ValueError as err:
        _print_error(args, err)
        return 1

    try:
        schedule = parse_schedule(args.annotation)
    except ScheduleError as err:
        _print_error(args, err)
        return 1

    print("=" * 70)
    print("SCHEDULE RESULTS")
    print("=" * 70)
    print(f"Now:           {now.isoformat()}")
    print(f"Last Update:   {last_update.isoformat() if last_update else '(never)'}")
    print()

    if schedule is None:
        print("No maintenance windows configured.")
    else:
        for window in schedule:
            try:
                previous = find_previous_occurrence(window.rule, now)
            except ScheduleError as err:
                shown = f"(search failed: {err})"
            else:
                shown = previous.isoformat() if previous else "(none in lookback)"
            print(f"  {window.source}")
            print(f"    Previous:  {shown}")

    allowed = is_update_allowed(schedule, last_update, now, logger)
    print()
    print(f"Allowed:       {'yes' if allowed else 'no'}")
    print("=" * 70)
    return 0


def _build_manager(args: argparse.Namespace, logger: Logger) -> ApprovalManager:
    settings = GateSettings()
    if args.config:
        settings = settings_from_config(
            load_effective_config(Path(args.config), logger=logger)
        )

    state_file = Path(args.state_file) if args.state_file else settings.state_file
    logger.verbose("APPROVALS", f"State file: {state_file}")

    sink = None
    if settings.webhook_url:
        sink = WebhookSink(
            settings.webhook_url,
            token=settings.webhook_token,
            timeout=settings.webhook_timeout,
            logger=logger,
        )
    return ApprovalManager(
        FileCache(state_file, logger=logger),
        sink=sink,
        prefix=settings.cache_prefix,
        logger=logger,
    )


def _print_approval(approval: Approval) -> None:
    print(f"{approval.provider}/{approval.identifier}")
    print(f"  Delta:     {approval.delta()}")
    status = f"{approval.status()} (archived)" if approval.archived else approval.status()
    print(f"  Status:    {status}")
    print(f"  Votes:     {approval.votes_received}/{approval.votes_required}")
    if approval.voters:
        print(f"  Voters:    {', '.join(approval.voters)}")
    if approval.created_at is not None:
        print(f"  Expires:   {approval.expires_at().isoformat()}")


def cmd_approvals(args: argparse.Namespace) -> int:
    """Handler for 'rollgate approvals' commands.

    Args:
        args: Parsed command-line arguments containing the approvals action,
            its provider/identifier arguments, state file and config path.

    Returns:
        Exit code (0 for success, 1 for failure).

    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)

    try:
        manager = _build_manager(args, logger)

        if args.action == "list":
            approvals = manager.list(args.provider, include_archived=args.archived)
            print("=" * 70)
            print(f"APPROVALS ({len(approvals)})")
            print("=" * 70)
            for approval in approvals:
                _print_approval(approval)
            print("=" * 70)
            return 0

        if args.action == "approve":
            approval = manager.approve(args.provider, args.identifier, voter=args.voter)
            _print_approval(approval)
            print()
            print(f"[SUCCESS] Vote recorded ({approval.status()}).")
            return 0

        if args.action == "reject":
            approval = manager.reject(args.provider, args.identifier)
            _print_approval(approval)
            print()
            print("[SUCCESS] Approval rejected.")
            return 0

        if args.action == "delete":
            manager.delete(args.provider, args.identifier)
            print(f"[SUCCESS] Deleted {args.provider}/{args.identifier}.")
            return 0

        expired = manager.expire_entries()
        for approval in expired:
            print(f"  expired {approval.provider}/{approval.identifier}")
        print(f"[SUCCESS] Expired {len(expired)} approval(s).")
        return 0

    except NotFoundError as err:
        print(f"[FAILED] No such approval: {err}")
        return 1
    except RollgateError as err:
        _print_error(args, err)
        return 1


def cmd_validate_config(args: argparse.Namespace) -> int:
    """Handler for 'rollgate validate-config' command.

    Loads a YAML config file over the built-in defaults and checks every
    setting without contacting any endpoint.

    Returns:
        Exit code (0 for a valid config, 1 otherwise).

    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    config_path = Path(args.config_file).resolve()

    print(f"Validating config: {config_path}")
    print()

    try:
        settings = settings_from_config(load_effective_config(config_path, logger=logger))
    except ConfigError as err:
        print(f"[FAILED] {err}")
        return 1

    print("=" * 70)
    print("CONFIG")
    print("=" * 70)
    print(f"Schedule Key:        {settings.schedule_key}")
    print(f"Update Time Key:     {settings.update_time_key}")
    print(f"Approvals Key:       {settings.approvals_key}")
    print(f"Deadline Key:        {settings.approval_deadline_key}")
    print(f"Approval Deadline:   {settings.approval_deadline}")
    print(f"Expiry Interval:     {settings.expiry_interval}")
    print(f"Cache Prefix:        {settings.cache_prefix}")
    print(f"State File:          {settings.state_file}")
    print(f"Webhook URL:         {settings.webhook_url or '(none)'}")
    print(f"Webhook Token:       {'set' if settings.webhook_token else '(none)'}")
    print("=" * 70)
    print()
    print("[SUCCESS] Config is valid!")
    return 0


def _add_output_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rollgate",
        description="rollgate - update gating for container workloads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"rollgate {__version__}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'schedule' command
    parser_schedule = subparsers.add_parser(
        "schedule",
        help="Evaluate a maintenance window annotation",
        description="Show previous window occurrences and whether an update is allowed.",
    )
    parser_schedule.add_argument(
        "annotation",
        help='Schedule annotation, e.g. "0 0 2 * * *|2h,@every 12h|15m"',
    )
    parser_schedule.add_argument(
        "--now",
        default=None,
        help="Evaluate at this ISO 8601 instant (default: current time)",
    )
    parser_schedule.add_argument(
        "--last-update",
        default=None,
        help="ISO 8601 instant of the last applied update (default: never)",
    )
    _add_output_flags(parser_schedule)
    parser_schedule.set_defaults(func=cmd_schedule)

    # 'approvals' command
    parser_approvals = subparsers.add_parser(
        "approvals",
        help="Manage approvals stored in a state file",
        description="List, vote on, reject, delete or expire approval records.",
    )
    parser_approvals.add_argument(
        "--state-file",
        type=Path,
        default=None,
        help="Approvals state file (default: from config or state/approvals.json)",
    )
    parser_approvals.add_argument(
        "--config",
        default=None,
        help="rollgate YAML config (webhook for resubmission, cache prefix)",
    )
    _add_output_flags(parser_approvals)
    actions = parser_approvals.add_subparsers(dest="action", required=True)

    parser_list = actions.add_parser("list", help="List approvals")
    parser_list.add_argument("--provider", default=None, help="Only this provider")
    parser_list.add_argument(
        "--archived", action="store_true", help="Include archived approvals"
    )

    parser_approve = actions.add_parser("approve", help="Add a vote")
    parser_approve.add_argument("provider")
    parser_approve.add_argument("identifier")
    parser_approve.add_argument("--voter", default=None, help="Voter id")

    for name, help_text in (
        ("reject", "Reject an approval"),
        ("delete", "Delete an approval"),
    ):
        parser_action = actions.add_parser(name, help=help_text)
        parser_action.add_argument("provider")
        parser_action.add_argument("identifier")

    actions.add_parser("expire", help="Delete approvals past their deadline")
    parser_approvals.set_defaults(func=cmd_approvals)

    # 'validate-config' command
    parser_validate = subparsers.add_parser(
        "validate-config",
        help="Validate a rollgate YAML config file",
        description="Check a config file for syntax errors and invalid values.",
    )
    parser_validate.add_argument("config_file", help="Path to the YAML config")
    _add_output_flags(parser_validate)
    parser_validate.set_defaults(func=cmd_validate_config)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the rollgate CLI.

    This function is registered as the 'rollgate' console script in
    pyproject.toml.
    """
    args = build_parser().parse_args(argv)
    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
