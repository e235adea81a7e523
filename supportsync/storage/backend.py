"""Async SQLite storage backend with upsert semantics.

Every write is a single ``INSERT ... ON CONFLICT(id) DO UPDATE`` statement
committed on a pooled connection, so writes for different IDs are
independent and a failed write never affects a sibling. Two concurrent
writes for the same ID are resolved by SQLite: the last commit wins.

Example:
    async with AsyncSQLiteBackend(db_path, pool_size=10) as backend:
        await backend.upsert("conversations", record)
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from types import TracebackType
from typing import Any

import aiosqlite

from supportsync.errors import DatabaseError
from supportsync.lib.json import loads as json_loads
from supportsync.lib.log import get_logger
from supportsync.paths import default_db_path
from supportsync.storage.pool import AsyncConnectionPool
from supportsync.storage.records import (
    RECORD_TYPES,
    ConversationRecord,
    MessageRecord,
    Record,
    SenderRecord,
)
from supportsync.storage.schema import ensure_schema
from supportsync.types import Entity

LOGGER = get_logger(__name__)


def _upsert_sql(table: str, columns: tuple[str, ...]) -> str:
    placeholders = ", ".join("?" for _ in columns)
    updates = ",\n            ".join(f"{col} = excluded.{col}" for col in columns if col != "id")
    return f"""
        INSERT INTO {table} ({", ".join(columns)})
        VALUES ({placeholders})
        ON CONFLICT(id) DO UPDATE SET
            {updates}
    """


_UPSERT_SQL: dict[Entity, str] = {
    entity: _upsert_sql(entity.value, record_type.columns())
    for entity, record_type in RECORD_TYPES.items()
}


def _resolve_entity(table: str | Entity) -> Entity:
    try:
        return Entity(table)
    except ValueError:
        raise DatabaseError(f"Unknown table {table!r}") from None


def _row_to_record(entity: Entity, row: aiosqlite.Row) -> Record:
    record_type = RECORD_TYPES[entity]
    values: dict[str, Any] = {}
    for name in record_type.columns():
        value = row[name]
        if name in record_type.json_fields:
            value = json_loads(value)
        values[name] = value
    return record_type(**values)  # type: ignore[return-value]


class AsyncSQLiteBackend:
    """Async SQLite storage backend.

    The backend owns its connection pool. Open it with ``async with`` (or
    ``open``/``close``) for exactly one run so the pool is released on every
    exit path.

    Pool sizing is independent of the pipeline's concurrency limits. With
    conversation limit C and message limit M the worst-case demand is C x M
    writes; when that exceeds ``pool_size`` the extra writes queue inside the
    pool until a connection frees up or ``acquire_timeout`` expires.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        *,
        pool_size: int = 10,
        acquire_timeout: float | None = 30.0,
    ) -> None:
        self._db_path = Path(db_path) if db_path is not None else default_db_path()
        self._pool = AsyncConnectionPool(self._db_path, size=pool_size, acquire_timeout=acquire_timeout)

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def pool(self) -> AsyncConnectionPool:
        return self._pool

    async def open(self) -> None:
        await self._pool.open()
        try:
            async with self._pool.acquire() as conn:
                await ensure_schema(conn)
        except sqlite3.Error as exc:
            await self._pool.close()
            raise DatabaseError(f"Cannot initialize schema in {self._db_path}: {exc}") from exc
        except DatabaseError:
            await self._pool.close()
            raise

    async def close(self) -> None:
        await self._pool.close()

    async def __aenter__(self) -> AsyncSQLiteBackend:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def upsert(self, table: str | Entity, record: Record) -> None:
        """Insert ``record`` or overwrite every non-key column of the existing row.

        Raises:
            DatabaseError: unknown table, mismatched record type, or any
                SQLite failure during the write.
        """
        entity = _resolve_entity(table)
        if not isinstance(record, RECORD_TYPES[entity]):
            raise DatabaseError(
                f"Cannot upsert {type(record).__name__} into {entity.value}"
            )
        sql = _UPSERT_SQL[entity]
        async with self._pool.acquire() as conn:
            try:
                await conn.execute(sql, record.to_row())
                await conn.commit()
            except sqlite3.Error as exc:
                await conn.rollback()
                raise DatabaseError(f"{entity.value} upsert failed for id={record.id}: {exc}") from exc

    async def save_conversation(self, record: ConversationRecord) -> None:
        await self.upsert(Entity.CONVERSATION, record)

    async def save_message(self, record: MessageRecord) -> None:
        await self.upsert(Entity.MESSAGE, record)

    async def save_sender(self, record: SenderRecord) -> None:
        await self.upsert(Entity.SENDER, record)

    async def get_conversation(self, conversation_id: str) -> ConversationRecord | None:
        row = await self._fetch_one("SELECT * FROM conversations WHERE id = ?", (conversation_id,))
        return _row_to_record(Entity.CONVERSATION, row) if row is not None else None  # type: ignore[return-value]

    async def get_messages(self, conversation_id: str) -> list[MessageRecord]:
        """Messages of a conversation ordered by send time, then ID."""
        async with self._pool.acquire() as conn:
            cursor = await conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY created_at, id",
                (conversation_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_record(Entity.MESSAGE, row) for row in rows]  # type: ignore[misc]

    async def get_sender(self, sender_id: str) -> SenderRecord | None:
        row = await self._fetch_one("SELECT * FROM senders WHERE id = ?", (sender_id,))
        return _row_to_record(Entity.SENDER, row) if row is not None else None  # type: ignore[return-value]

    async def count_rows(self) -> dict[str, int]:
        """Row count per table."""
        counts: dict[str, int] = {}
        async with self._pool.acquire() as conn:
            for entity in Entity:
                cursor = await conn.execute(f"SELECT COUNT(*) AS cnt FROM {entity.value}")
                row = await cursor.fetchone()
                counts[entity.value] = int(row["cnt"])
        return counts

    async def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> aiosqlite.Row | None:
        async with self._pool.acquire() as conn:
            cursor = await conn.execute(sql, params)
            return await cursor.fetchone()


__all__ = ["AsyncSQLiteBackend"]
