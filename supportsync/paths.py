"""Shared filesystem paths for supportsync."""

from __future__ import annotations

import os
from pathlib import Path


def _xdg_path(env_var: str, fallback: Path) -> Path:
    raw = os.environ.get(env_var)
    if raw:
        return Path(raw).expanduser()
    return fallback


def default_db_path() -> Path:
    """Return the default database path.

    Reads XDG_DATA_HOME at call time for test isolation.
    """
    return _xdg_path("XDG_DATA_HOME", Path.home() / ".local/share") / "supportsync" / "supportsync.db"


__all__ = ["default_db_path"]
