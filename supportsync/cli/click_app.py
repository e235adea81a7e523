"""CLI entrypoint."""
from __future__ import annotations

from pathlib import Path

import click

from supportsync.cli.commands.probe import probe_command
from supportsync.cli.commands.run import run_command
from supportsync.cli.commands.stats import stats_command
from supportsync.cli.types import AppEnv
from supportsync.lib.log import configure_logging
from supportsync.version import SUPPORTSYNC_VERSION


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Log debug events")
@click.option("--json-logs", is_flag=True, help="Write logs to stderr as JSON lines")
@click.option(
    "--env-file",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Read settings from this .env file instead of ./.env",
)
@click.version_option(SUPPORTSYNC_VERSION, prog_name="supportsync")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, json_logs: bool, env_file: Path | None) -> None:
    """Sync support conversations into a local SQLite database."""
    configure_logging(verbose=verbose, json_logs=json_logs)
    ctx.obj = AppEnv(env_file=env_file)


cli.add_command(run_command)
cli.add_command(probe_command)
cli.add_command(stats_command)


__all__ = ["cli"]
