"""Bounded pool of aiosqlite connections.

A fixed set of connections lives in an ``asyncio.Queue``. ``acquire`` waits
for a free connection rather than opening extra ones, so demand above the
pool size queues up. Only waiting longer than ``acquire_timeout`` is an
error (``PoolTimeoutError``), and it is raised to the single caller that
timed out.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from supportsync.errors import DatabaseError, PoolTimeoutError
from supportsync.lib.log import get_logger

LOGGER = get_logger(__name__)


async def _connect(db_path: Path) -> aiosqlite.Connection:
    conn = await aiosqlite.connect(db_path, timeout=30)
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA busy_timeout = 30000")
    return conn


class AsyncConnectionPool:
    """Fixed-size connection pool with queue backpressure.

    Example:
        pool = AsyncConnectionPool(db_path, size=4)
        await pool.open()
        async with pool.acquire() as conn:
            await conn.execute("SELECT 1")
        await pool.close()
    """

    def __init__(self, db_path: Path, *, size: int = 10, acquire_timeout: float | None = 30.0) -> None:
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self._db_path = Path(db_path)
        self._size = size
        self._acquire_timeout = acquire_timeout
        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()
        self._connections: list[aiosqlite.Connection] = []
        self._closed = False

    @property
    def size(self) -> int:
        return self._size

    @property
    def available(self) -> int:
        """Number of idle connections right now."""
        return self._idle.qsize()

    async def open(self) -> None:
        if self._connections:
            return
        self._closed = False
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            for _ in range(self._size):
                conn = await _connect(self._db_path)
                self._connections.append(conn)
                self._idle.put_nowait(conn)
        except (OSError, sqlite3.Error) as exc:
            await self.close()
            raise DatabaseError(f"Cannot open database {self._db_path}: {exc}") from exc
        except Exception:
            await self.close()
            raise
        LOGGER.debug("pool_opened", db_path=str(self._db_path), size=self._size)

    async def close(self) -> None:
        self._closed = True
        connections, self._connections = self._connections, []
        for conn in connections:
            await conn.close()
        self._idle = asyncio.Queue()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a connection, waiting while the pool is exhausted."""
        if self._closed or not self._connections:
            raise DatabaseError("Connection pool is not open")
        try:
            conn = await asyncio.wait_for(self._idle.get(), timeout=self._acquire_timeout)
        except asyncio.TimeoutError as exc:
            raise PoolTimeoutError(
                f"No database connection free after {self._acquire_timeout}s (pool size {self._size})"
            ) from exc
        try:
            yield conn
        finally:
            if not self._closed:
                self._idle.put_nowait(conn)


__all__ = ["AsyncConnectionPool"]
