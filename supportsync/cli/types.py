"""CLI types."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console


@dataclass
class AppEnv:
    console: Console = field(default_factory=Console)
    env_file: Path | None = None
