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

"""
Configuration loader for rollgate.

Configuration comes from two layers:

1. **Built-in defaults** (DEFAULT_CONFIG)
   - Annotation keys, approval deadline, expiry interval, cache prefix
   - Always present

2. **Config file** (YAML, optional)
   - Site-specific overrides, e.g. a webhook URL for resubmission
   - Overrides the built-in defaults

Merge Behavior
--------------
Deep merging with "overlay wins" semantics:
  - **Dicts**: Recursively merged (keys from overlay override base)
  - **Lists**: Completely replaced (NOT appended/extended)
  - **Scalars**: Overwritten (strings, numbers, booleans)

Secrets
-------
The webhook bearer token is never read from YAML. It comes from the
environment variable named by ``webhook.token_env`` (ROLLGATE_WEBHOOK_TOKEN
by default); a ``.env`` file in the working directory is loaded first.

Error Handling
--------------
- ConfigError: missing file, YAML parse errors, non-mapping top level,
  invalid values. All errors are chained with "from err".

Example
-------
    >>> from pathlib import Path
    >>> from rollgate.config import load_effective_config, settings_from_config
    >>> cfg = load_effective_config(Path("rollgate.yaml"))
    >>> settings = settings_from_config(cfg)
    >>> settings.approval_deadline
    datetime.timedelta(days=1)
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import timedelta
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
import yaml

from rollgate.exceptions import ConfigError
from rollgate.logging import Logger, SilentLogger

DEFAULT_CONFIG: dict[str, Any] = {
    "annotations": {
        "schedule": "rollgate.io/update-schedule",
        "update_time": "rollgate.io/update-time",
        "approvals": "rollgate.io/approvals",
        "approval_deadline": "rollgate.io/approval-deadline",
    },
    "approvals": {
        "deadline_hours": 24,
        "expiry_interval_minutes": 60,
        "cache_prefix": "approvals",
        "state_file": "state/approvals.json",
    },
    "webhook": {
        "url": None,
        "timeout": 30,
        "token_env": "ROLLGATE_WEBHOOK_TOKEN",
    },
}

# -------------------------------
# Data types
# -------------------------------


@dataclass(frozen=True)
class GateSettings:
    """Typed view of the effective configuration.

    Attributes:
        schedule_key: Annotation holding the maintenance windows.
        update_time_key: Annotation holding the last update time (ISO 8601).
        approvals_key: Label/annotation holding the required vote count.
        approval_deadline_key: Label/annotation overriding the deadline, in
            hours.
        approval_deadline: Default approval lifetime.
        expiry_interval: How often the expiry service sweeps.
        cache_prefix: Key prefix for approval records.
        state_file: Default JSON state file for the CLI.
        webhook_url: Native webhook endpoint for resubmission, if any.
        webhook_timeout: Per-request timeout in seconds.
        webhook_token: Bearer token for the webhook, if any.

    """

    schedule_key: str = "rollgate.io/update-schedule"
    update_time_key: str = "rollgate.io/update-time"
    approvals_key: str = "rollgate.io/approvals"
    approval_deadline_key: str = "rollgate.io/approval-deadline"
    approval_deadline: timedelta = timedelta(hours=24)
    expiry_interval: timedelta = timedelta(minutes=60)
    cache_prefix: str = "approvals"
    state_file: Path = Path("state/approvals.json")
    webhook_url: str | None = None
    webhook_timeout: int = 30
    webhook_token: str | None = None


# -------------------------------
# YAML helpers
# -------------------------------


def _load_yaml_file(p: Path) -> Any:
    """
    Load a YAML file and return the parsed Python object.

    Raises:
      ConfigError - when the file does not exist, is empty or is invalid YAML
    """
    if not p.exists():
        raise ConfigError(f"config file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"YAML file is empty: {p}")
    return data


# -------------------------------
# Merge logic
# -------------------------------


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two dicts with "overlay wins".

    Rules:
      - dict + dict -> deep merge
      - list + list -> overlay REPLACES base (not concatenated)
      - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


# -------------------------------
# Public API
# -------------------------------


def load_effective_config(
    config_path: Path | None = None,
    *,
    logger: Logger | None = None,
) -> dict[str, Any]:
    """
    Load the effective configuration.

    Steps
      1) Start from DEFAULT_CONFIG.
      2) If a config path is given, read it and deep-merge it on top.

    Returns
      A merged configuration dict.

    Raises
      ConfigError on missing files, YAML parse errors or a non-mapping
      top level.
    """
    log = logger or SilentLogger()
    merged = copy.deepcopy(DEFAULT_CONFIG)
    if config_path is None:
        log.verbose("CONFIG", "No config file given, using built-in defaults")
        return merged

    config_path = Path(config_path)
    log.verbose("CONFIG", f"Loading: {config_path}")
    overlay = _load_yaml_file(config_path)
    if not isinstance(overlay, dict):
        raise ConfigError(f"top-level YAML must be a mapping (dict): {config_path}")

    merged = _deep_merge_dicts(merged, overlay)
    log.debug("CONFIG", f"Effective config: {merged}")
    return merged


def _positive_number(cfg: dict[str, Any], section: str, key: str) -> float:
    value = cfg.get(section, {}).get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{section}.{key} must be a positive number, got {value!r}")
    return float(value)


def settings_from_config(cfg: dict[str, Any]) -> GateSettings:
    """
    Build GateSettings from a merged configuration dict.

    Loads a ``.env`` file (if present) before resolving the webhook token.

    Raises
      ConfigError on invalid numeric values or annotation keys.
    """
    annotations = cfg.get("annotations", {})
    for name in ("schedule", "update_time", "approvals", "approval_deadline"):
        if not isinstance(annotations.get(name), str) or not annotations[name]:
            raise ConfigError(f"annotations.{name} must be a non-empty string")

    approvals = cfg.get("approvals", {})
    webhook = cfg.get("webhook", {}) or {}

    url = webhook.get("url")
    if url is not None and not isinstance(url, str):
        raise ConfigError(f"webhook.url must be a string, got {url!r}")

    load_dotenv()
    token_env = webhook.get("token_env") or "ROLLGATE_WEBHOOK_TOKEN"
    token = os.getenv(token_env) or None

    return GateSettings(
        schedule_key=annotations["schedule"],
        update_time_key=annotations["update_time"],
        approvals_key=annotations["approvals"],
        approval_deadline_key=annotations["approval_deadline"],
        approval_deadline=timedelta(
            hours=_positive_number(cfg, "approvals", "deadline_hours")
        ),
        expiry_interval=timedelta(
            minutes=_positive_number(cfg, "approvals", "expiry_interval_minutes")
        ),
        cache_prefix=str(approvals.get("cache_prefix") or "approvals"),
        state_file=Path(approvals.get("state_file") or "state/approvals.json"),
        webhook_url=url or None,
        webhook_timeout=int(_positive_number(cfg, "webhook", "timeout")),
        webhook_token=token,
    )
