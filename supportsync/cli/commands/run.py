"""Run command: one ingestion run, or a polling loop with ``--watch``."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from supportsync.cli.formatting import failures_table, format_counts, report_table
from supportsync.cli.helpers import fail, settings_for
from supportsync.cli.types import AppEnv
from supportsync.config import Settings
from supportsync.errors import SupportSyncError
from supportsync.lib.json import dumps as json_dumps
from supportsync.pipeline.report import RunReport
from supportsync.pipeline.runner import install_signal_handlers, run_once
from supportsync.pipeline.watch import WatchRunner


async def _run_single(settings: Settings) -> RunReport:
    stop = asyncio.Event()
    install_signal_handlers(stop)
    return await run_once(settings, stop=stop)


async def _run_watch(env: AppEnv, settings: Settings, json_mode: bool) -> int:
    stop = asyncio.Event()
    install_signal_handlers(stop)

    def on_report(report: RunReport) -> None:
        if json_mode:
            click.echo(json_dumps(report.model_dump(mode="json")))
        else:
            env.console.print(f"[dim]{report.window_end}[/dim] {format_counts(report)}")

    async def run_fn(stop_event: asyncio.Event) -> RunReport:
        return await run_once(settings, stop=stop_event)

    runner = WatchRunner(run_fn, interval=settings.interval_seconds, on_report=on_report)
    if not json_mode:
        env.console.print(
            f"Watching every {settings.interval_seconds:g}s. Press Ctrl+C to stop."
        )
    await runner.run(stop)
    return runner.runs


def _display(env: AppEnv, report: RunReport, json_mode: bool) -> None:
    if json_mode:
        click.echo(json_dumps(report.model_dump(mode="json")))
        return
    env.console.print(report_table(report))
    failures = failures_table(report)
    if failures is not None:
        env.console.print(failures)
    if report.fetched == 0:
        env.console.print("[yellow]No conversations in window.[/yellow]")


@click.command("run")
@click.option("--watch", is_flag=True, help="Repeat the run every --interval seconds until interrupted")
@click.option("--interval", type=click.FloatRange(min=0, min_open=True), help="Seconds between watch runs")
@click.option(
    "--lookback-hours",
    type=click.FloatRange(min=0, min_open=True),
    help="Fetch the last N hours instead of the current day",
)
@click.option("--db", "db_path", type=click.Path(path_type=Path), help="SQLite database path")
@click.option("--json", "json_mode", is_flag=True, help="Emit the run report as JSON")
@click.option("--strict", is_flag=True, help="Exit with status 1 when any record failed")
@click.pass_obj
def run_command(
    env: AppEnv,
    watch: bool,
    interval: float | None,
    lookback_hours: float | None,
    db_path: Path | None,
    json_mode: bool,
    strict: bool,
) -> None:
    """Fetch conversations from the support API and upsert them into the database."""
    settings = settings_for(
        env,
        "run",
        interval_seconds=interval,
        lookback_hours=lookback_hours,
        db_path=db_path,
    )

    if watch:
        try:
            asyncio.run(_run_watch(env, settings, json_mode))
        except KeyboardInterrupt:
            pass
        return

    try:
        report = asyncio.run(_run_single(settings))
    except SupportSyncError as exc:
        fail("run", str(exc))
    _display(env, report, json_mode)
    if strict and report.failures:
        raise SystemExit(1)


__all__ = ["run_command"]
