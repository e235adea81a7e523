"""Stats command: row counts of the local database."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from rich.table import Table

from supportsync.cli.helpers import fail, settings_for
from supportsync.cli.types import AppEnv
from supportsync.errors import DatabaseError
from supportsync.lib.json import dumps as json_dumps
from supportsync.storage.backend import AsyncSQLiteBackend


async def _count(db_path: Path) -> dict[str, int]:
    async with AsyncSQLiteBackend(db_path, pool_size=1) as backend:
        return await backend.count_rows()


@click.command("stats")
@click.option("--db", "db_path", type=click.Path(path_type=Path), help="SQLite database path")
@click.option("--json", "json_mode", is_flag=True, help="Emit counts as JSON")
@click.pass_obj
def stats_command(env: AppEnv, db_path: Path | None, json_mode: bool) -> None:
    """Show how many conversations, messages and senders are stored."""
    settings = settings_for(env, "stats", db_path=db_path)
    if not settings.db_path.exists():
        fail("stats", f"database not found: {settings.db_path}")
    try:
        counts = asyncio.run(_count(settings.db_path))
    except DatabaseError as exc:
        fail("stats", str(exc))

    if json_mode:
        click.echo(json_dumps({"db_path": str(settings.db_path), **counts}))
        return
    table = Table(title=str(settings.db_path))
    table.add_column("Table")
    table.add_column("Rows", justify="right")
    for name, count in counts.items():
        table.add_row(name, f"{count:,}")
    env.console.print(table)


__all__ = ["stats_command"]
