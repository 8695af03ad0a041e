"""Load and validate the optional rip config file (YAML)."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml


# Default config values
DEFAULTS: dict[str, Any] = {
    "graveyard": None,
    "big_file_threshold": 500_000_000,
    "dir_mode": "0777",
    "keep_history": False,
    "inspect": {
        "lines": 6,
        "files": 6,
    },
}

DEFAULT_CONFIG_PATH = "~/.config/rip/config.yaml"
GRAVEYARD_PREFIX = "/tmp/graveyard"
UNKNOWN_ACTOR = "unknown"


class ConfigError(Exception):
    """Raised when config is invalid."""


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base recursively. Override wins on conflicts."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def parse_mode(value: Any) -> int:
    """Accept ``"0755"``, ``"755"``, ``"0o755"`` or an int."""
    if isinstance(value, bool):
        raise ConfigError(f"'dir_mode' must be an octal string, got {value!r}")
    if isinstance(value, int):
        mode = value
    elif isinstance(value, str):
        try:
            mode = int(value.removeprefix("0o"), 8)
        except ValueError as exc:
            raise ConfigError(f"'dir_mode' is not an octal mode: {value!r}") from exc
    else:
        raise ConfigError(f"'dir_mode' must be an octal string, got {type(value).__name__}")
    if not 0 <= mode <= 0o7777:
        raise ConfigError(f"'dir_mode' out of range: {value!r}")
    return mode


def _validate(config: dict) -> None:
    """Validate field types in config."""
    graveyard = config.get("graveyard")
    if graveyard is not None and not isinstance(graveyard, str):
        raise ConfigError("'graveyard' must be a path string")

    threshold = config.get("big_file_threshold")
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
        raise ConfigError("'big_file_threshold' must be a non-negative integer")

    parse_mode(config.get("dir_mode"))

    if not isinstance(config.get("keep_history"), bool):
        raise ConfigError("'keep_history' must be true or false")

    inspect = config.get("inspect")
    if not isinstance(inspect, dict):
        raise ConfigError("'inspect' must be a mapping")
    for key in ("lines", "files"):
        val = inspect.get(key)
        if isinstance(val, bool) or not isinstance(val, int) or val < 0:
            raise ConfigError(f"'inspect.{key}' must be a non-negative integer")


def config_path(explicit: str | Path | None = None, env: Mapping[str, str] | None = None) -> Path:
    """Pick the config file: explicit path, then $RIP_CONFIG, then the default."""
    env = os.environ if env is None else env
    raw = explicit or env.get("RIP_CONFIG") or DEFAULT_CONFIG_PATH
    return Path(raw).expanduser()


def load_config(path: str | Path | None = None, env: Mapping[str, str] | None = None) -> dict:
    """Load the config file merged over DEFAULTS.

    A missing file at the default location yields DEFAULTS; a missing file
    that was asked for explicitly (argument or $RIP_CONFIG) is an error.
    """
    env = os.environ if env is None else env
    resolved = config_path(path, env)
    explicit = bool(path or env.get("RIP_CONFIG"))

    if not resolved.exists():
        if explicit:
            raise ConfigError(f"Config not found: {resolved}")
        config = _deep_merge(DEFAULTS, {})
        _validate(config)
        return config

    with open(resolved) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse {resolved}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping, got {type(raw).__name__}")

    config = _deep_merge(DEFAULTS, raw)
    _validate(config)
    return config


def get_actor(env: Mapping[str, str] | None = None) -> str:
    """The current user's name from $USER, or ``unknown``."""
    env = os.environ if env is None else env
    return env.get("USER") or UNKNOWN_ACTOR


def resolve_graveyard(
    flag: str | None,
    config: dict,
    actor: str,
    env: Mapping[str, str] | None = None,
) -> Path:
    """Resolve the graveyard root.

    Priority: ``--graveyard`` flag, $GRAVEYARD, config ``graveyard``,
    then ``/tmp/graveyard-<actor>``. The result is absolute.
    """
    env = os.environ if env is None else env
    raw = flag or env.get("GRAVEYARD") or config.get("graveyard") or f"{GRAVEYARD_PREFIX}-{actor}"
    return Path(os.path.abspath(Path(raw).expanduser()))
