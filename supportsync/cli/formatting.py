"""CLI output formatting utilities."""

from __future__ import annotations

from rich.table import Table

from supportsync.pipeline.report import RunReport
from supportsync.types import Entity


def format_counts(report: RunReport) -> str:
    parts = []
    for entity in Entity:
        counts = report.counts_for(entity)
        part = f"{counts.saved}/{counts.attempted} {entity.value}"
        if counts.failed:
            part += f" ({counts.failed} failed)"
        parts.append(part)
    return ", ".join(parts)


def report_table(report: RunReport) -> Table:
    title = f"Run {report.run_id[:8]}"
    if report.cancelled:
        title += " (cancelled)"
    table = Table(title=title, show_lines=False)
    table.add_column("Table")
    for column in ("Attempted", "Saved", "Failed", "Skipped"):
        table.add_column(column, justify="right")
    for entity in Entity:
        counts = report.counts_for(entity)
        table.add_row(
            entity.value,
            str(counts.attempted),
            str(counts.saved),
            f"[red]{counts.failed}[/red]" if counts.failed else "0",
            str(counts.skipped),
        )
    table.caption = (
        f"window {report.window_start} .. {report.window_end} | "
        f"fetched {report.fetched} | {report.duration_ms}ms"
    )
    return table


def failures_table(report: RunReport, limit: int = 20) -> Table | None:
    if not report.failures:
        return None
    table = Table(title="Failures")
    table.add_column("Table")
    table.add_column("ID")
    table.add_column("Conversation")
    table.add_column("Error", overflow="fold")
    for failure in report.failures[:limit]:
        table.add_row(
            failure.entity.value,
            failure.record_id or "-",
            failure.conversation_id or "-",
            failure.error,
        )
    if len(report.failures) > limit:
        table.caption = f"{len(report.failures) - limit} more not shown"
    return table
