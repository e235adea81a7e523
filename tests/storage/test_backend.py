"""Tests for the async SQLite backend.

Covers:
- Schema creation and version guard
- Insert-or-update semantics (idempotence, update in place, no duplicates)
- JSON column round trip
- Concurrent writes for distinct IDs
- Error reporting for unknown tables and mismatched records
"""

import asyncio
import sqlite3

import aiosqlite
import pytest

from supportsync.errors import DatabaseError
from supportsync.storage.backend import AsyncSQLiteBackend
from supportsync.storage.records import ConversationRecord, MessageRecord, SenderRecord
from supportsync.storage.schema import SCHEMA_VERSION


def _conversation(conversation_id: str = "42", **fields) -> ConversationRecord:
    return ConversationRecord(id=conversation_id, **fields)


# =============================================================================
# Lifecycle and schema
# =============================================================================


@pytest.mark.asyncio
async def test_open_creates_tables_and_sets_version(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=2) as backend:
        assert await backend.count_rows() == {"conversations": 0, "messages": 0, "senders": 0}

    with sqlite3.connect(db_path) as conn:
        assert conn.execute("PRAGMA user_version").fetchone()[0] == SCHEMA_VERSION
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"conversations", "messages", "senders"} <= tables


@pytest.mark.asyncio
async def test_default_path_follows_xdg_data_home(isolated_env):
    async with AsyncSQLiteBackend(pool_size=1) as backend:
        assert backend.db_path == isolated_env / "supportsync" / "supportsync.db"
    assert backend.db_path.exists()


@pytest.mark.asyncio
async def test_reopen_keeps_data(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=1) as backend:
        await backend.save_conversation(_conversation(status="open"))
    async with AsyncSQLiteBackend(db_path, pool_size=1) as backend:
        stored = await backend.get_conversation("42")
    assert stored is not None
    assert stored.status == "open"


@pytest.mark.asyncio
async def test_newer_schema_version_is_refused(db_path):
    async with aiosqlite.connect(db_path) as conn:
        await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")
        await conn.commit()

    backend = AsyncSQLiteBackend(db_path, pool_size=1)
    with pytest.raises(DatabaseError, match="Unsupported DB schema version"):
        await backend.open()
    await backend.close()


# =============================================================================
# Upsert semantics
# =============================================================================


@pytest.mark.asyncio
async def test_upsert_is_idempotent(db_path):
    record = _conversation(status="open", labels=["vip"])
    async with AsyncSQLiteBackend(db_path, pool_size=2) as backend:
        await backend.upsert("conversations", record)
        await backend.upsert("conversations", record)
        counts = await backend.count_rows()
        stored = await backend.get_conversation("42")

    assert counts["conversations"] == 1
    assert stored == record


@pytest.mark.asyncio
async def test_upsert_overwrites_every_non_key_column(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=2) as backend:
        await backend.upsert("conversations", _conversation(status="open", assignee_id="7", meta={"a": 1}))
        await backend.upsert("conversations", _conversation(status="resolved"))
        stored = await backend.get_conversation("42")
        counts = await backend.count_rows()

    assert counts["conversations"] == 1
    assert stored is not None
    assert stored.status == "resolved"
    # Columns absent from the second write are reset, not merged.
    assert stored.assignee_id is None
    assert stored.meta == {}


@pytest.mark.asyncio
async def test_json_and_bool_columns_round_trip(db_path):
    message = MessageRecord(
        id="m1",
        conversation_id="42",
        content="hello",
        private=True,
        attachments=[{"file_type": "image", "data_url": "https://x/y.png"}],
        content_attributes={"in_reply_to": 9},
    )
    async with AsyncSQLiteBackend(db_path, pool_size=1) as backend:
        await backend.save_message(message)
        stored = await backend.get_messages("42")

    assert stored == [message]
    assert stored[0].private is True


@pytest.mark.asyncio
async def test_get_messages_orders_by_created_at(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=1) as backend:
        await backend.save_message(MessageRecord(id="b", conversation_id="42", created_at="2024-01-01T10:00:00.000Z"))
        await backend.save_message(MessageRecord(id="a", conversation_id="42", created_at="2024-01-01T11:00:00.000Z"))
        await backend.save_message(MessageRecord(id="c", conversation_id="other"))
        stored = await backend.get_messages("42")

    assert [m.id for m in stored] == ["b", "a"]


@pytest.mark.asyncio
async def test_message_without_saved_conversation_is_accepted(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=1) as backend:
        await backend.save_message(MessageRecord(id="m1", conversation_id="missing"))
        counts = await backend.count_rows()
    assert counts["messages"] == 1


@pytest.mark.asyncio
async def test_concurrent_upserts_of_distinct_ids(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=4) as backend:
        await asyncio.gather(
            *(backend.save_sender(SenderRecord(id=str(i), name=f"agent {i}")) for i in range(40))
        )
        counts = await backend.count_rows()
        sender = await backend.get_sender("17")

    assert counts["senders"] == 40
    assert sender is not None and sender.name == "agent 17"


@pytest.mark.asyncio
async def test_concurrent_upserts_of_same_id_leave_one_row(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=4) as backend:
        await asyncio.gather(
            *(backend.save_sender(SenderRecord(id="1", name=f"name {i}")) for i in range(10))
        )
        counts = await backend.count_rows()
        sender = await backend.get_sender("1")

    assert counts["senders"] == 1
    assert sender is not None and sender.name.startswith("name ")


# =============================================================================
# Errors
# =============================================================================


@pytest.mark.asyncio
async def test_unknown_table_raises(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=1) as backend:
        with pytest.raises(DatabaseError, match="Unknown table"):
            await backend.upsert("agents", SenderRecord(id="1"))


@pytest.mark.asyncio
async def test_mismatched_record_type_raises(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=1) as backend:
        with pytest.raises(DatabaseError, match="Cannot upsert SenderRecord into conversations"):
            await backend.upsert("conversations", SenderRecord(id="1"))


@pytest.mark.asyncio
async def test_sqlite_failure_is_wrapped_and_pool_survives(db_path):
    async with AsyncSQLiteBackend(db_path, pool_size=1) as backend:
        async with backend.pool.acquire() as conn:
            await conn.execute("DROP TABLE senders")
            await conn.commit()
        with pytest.raises(DatabaseError, match="senders upsert failed for id=1"):
            await backend.save_sender(SenderRecord(id="1"))
        # The connection went back to the pool and still works.
        await backend.save_conversation(_conversation())
        assert await backend.get_conversation("42") is not None


@pytest.mark.asyncio
async def test_upsert_after_close_raises(db_path):
    backend = AsyncSQLiteBackend(db_path, pool_size=1)
    await backend.open()
    await backend.close()
    with pytest.raises(DatabaseError, match="not open"):
        await backend.save_conversation(_conversation())
