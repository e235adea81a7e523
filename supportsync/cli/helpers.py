"""CLI helper functions."""

from __future__ import annotations

from typing import Any, NoReturn

from supportsync.cli.types import AppEnv
from supportsync.config import Settings, load_settings
from supportsync.errors import ConfigError


def fail(command: str, message: str) -> NoReturn:
    raise SystemExit(f"{command}: {message}")


def settings_for(env: AppEnv, command: str, **overrides: Any) -> Settings:
    """Load settings, turning validation errors into a clean CLI failure."""
    if env.env_file is not None:
        overrides["_env_file"] = env.env_file
    try:
        return load_settings(**overrides)
    except ConfigError as exc:
        fail(command, f"invalid configuration: {exc}")
