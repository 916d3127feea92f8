"""Configuration loading for rollgate.

Built-in defaults are deep-merged with an optional YAML file: dicts are
merged recursively and lists/scalars are replaced (last wins).

Public API:

- load_effective_config: Load and merge the configuration
- settings_from_config: Typed GateSettings from a merged config
- GateSettings: Frozen settings consumed by the gate and the CLI
- DEFAULT_CONFIG: Built-in defaults

Example:
    Basic usage:

        from pathlib import Path
        from rollgate.config import load_effective_config, settings_from_config

        settings = settings_from_config(load_effective_config(Path("rollgate.yaml")))
        print(settings.webhook_url)

"""

from .loader import (
    DEFAULT_CONFIG,
    GateSettings,
    load_effective_config,
    settings_from_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "GateSettings",
    "load_effective_config",
    "settings_from_config",
]
