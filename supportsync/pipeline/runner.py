"""Single-run entry point: window -> fetch -> ingest -> report."""

from __future__ import annotations

import asyncio
import signal
import time
import uuid
from contextlib import AsyncExitStack
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from supportsync.config import Settings
from supportsync.lib.log import get_logger
from supportsync.lib.timestamps import format_timestamp
from supportsync.pipeline.ingest import IngestionPipeline
from supportsync.pipeline.report import RunReport
from supportsync.protocols import ConversationSource, RecordStore
from supportsync.sources.client import SupportApiClient
from supportsync.storage.backend import AsyncSQLiteBackend

logger = get_logger(__name__)


def compute_window(
    tz: ZoneInfo,
    lookback_hours: float | None = None,
    *,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Return the ``(start, end)`` fetch window.

    Without ``lookback_hours`` the window is the current calendar day in
    ``tz``: midnight to the last millisecond before the next midnight. With
    it, the window ends at ``now``.
    """
    current = (now or datetime.now(tz)).astimezone(tz)
    if lookback_hours is not None:
        return current - timedelta(hours=lookback_hours), current
    start = current.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start, end


async def run_once(
    settings: Settings,
    *,
    stop: asyncio.Event | None = None,
    client: ConversationSource | None = None,
    store: RecordStore | None = None,
    now: datetime | None = None,
) -> RunReport:
    """Fetch the current window's conversations and ingest them.

    Client and store are created from ``settings`` unless injected; whatever
    is created here is closed before returning, including on error.
    """
    started = time.monotonic()
    window_start, window_end = compute_window(settings.tz, settings.lookback_hours, now=now)
    report = RunReport(
        run_id=uuid.uuid4().hex,
        window_start=format_timestamp(window_start),
        window_end=format_timestamp(window_end),
    )
    log = logger.bind(run_id=report.run_id)

    async with AsyncExitStack() as stack:
        if store is None:
            store = await stack.enter_async_context(
                AsyncSQLiteBackend(
                    settings.db_path,
                    pool_size=settings.pool_size,
                    acquire_timeout=settings.acquire_timeout,
                )
            )
        if client is None:
            client = await stack.enter_async_context(SupportApiClient.from_settings(settings))

        log.info("run_started", window_start=report.window_start, window_end=report.window_end)
        conversations = await client.list_conversations(window_start, window_end)
        report.fetched = len(conversations)

        if conversations:
            pipeline = IngestionPipeline(
                store,
                client,
                conversation_limit=settings.conversation_limit,
                message_limit=settings.message_limit,
                message_source=settings.message_source,
            )
            await pipeline.ingest(conversations, stop=stop, report=report)
        else:
            log.info("no_conversations_found")

        metrics = getattr(client, "metrics", None)
        if metrics is not None:
            report.source = metrics.snapshot()

    report.duration_ms = int((time.monotonic() - started) * 1000)
    log.info(
        "run_completed",
        cancelled=report.cancelled,
        duration_ms=report.duration_ms,
        **report.summary(),
    )
    return report


def install_signal_handlers(stop: asyncio.Event) -> None:
    """Set ``stop`` on SIGINT/SIGTERM so runs wind down instead of dying mid-write."""
    loop = asyncio.get_running_loop()

    def _request_stop(signame: str) -> None:
        if not stop.is_set():
            logger.warning("shutdown_requested", signal=signame)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, sig.name)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows event loops
            pass


__all__ = ["compute_window", "run_once", "install_signal_handlers"]
