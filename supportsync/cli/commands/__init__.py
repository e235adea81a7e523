"""Command modules for the supportsync CLI.

Each module exports one click command registered on the root group in
``supportsync.cli.click_app``.
"""

from __future__ import annotations

__all__: list[str] = []
