"""Fixed-interval loop around the single-run entry point.

Separates the polling/error handling from the CLI so the same loop can be
driven from a daemon or a test. The wrapped run function knows nothing
about being repeated.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from supportsync.errors import SupportSyncError
from supportsync.lib.log import get_logger
from supportsync.pipeline.report import RunReport

logger = get_logger(__name__)


class WatchRunner:
    """Run ``run_fn`` now and then every ``interval`` seconds until stopped.

    Args:
        run_fn: Coroutine function executing one run. It receives the stop
            event so an in-progress run can wind down on shutdown.
        interval: Seconds between the end of one run and the start of the next.
        on_report: Optional callback receiving each ``RunReport``.
        on_error: Optional callback for errors escaping a run. Receives the
            exception instance; the loop keeps going either way.
    """

    __slots__ = ("_run_fn", "_interval", "_on_report", "_on_error", "_stop", "runs")

    def __init__(
        self,
        run_fn: Callable[[asyncio.Event], Awaitable[RunReport]],
        interval: float = 60,
        on_report: Callable[[RunReport], Any] | None = None,
        on_error: Callable[[Exception], Any] | None = None,
    ) -> None:
        self._run_fn = run_fn
        self._interval = interval
        self._on_report = on_report
        self._on_error = on_error
        self._stop = asyncio.Event()
        self.runs = 0

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Loop until ``stop()`` is called or the given event is set."""
        if stop is not None:
            self._stop = stop
        while not self._stop.is_set():
            try:
                report = await self._run_fn(self._stop)
                self.runs += 1
                if self._on_report:
                    self._on_report(report)
            except SupportSyncError as exc:
                if self._on_error:
                    self._on_error(exc)
                else:
                    logger.warning("run_failed", error=str(exc))
            except Exception as exc:
                if self._on_error:
                    self._on_error(exc)
                else:
                    logger.error("run_crashed", error=str(exc), exc_info=exc)
            if self._stop.is_set():
                break
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        """Signal the loop to stop after the current run."""
        self._stop.set()


__all__ = ["WatchRunner"]
