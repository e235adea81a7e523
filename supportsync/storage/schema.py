"""SQLite schema: DDL and version control."""

from __future__ import annotations

import aiosqlite

from supportsync.errors import DatabaseError
from supportsync.lib.log import get_logger

logger = get_logger(__name__)
SCHEMA_VERSION = 1


SCHEMA_DDL = """
        CREATE TABLE IF NOT EXISTS conversations (
            id TEXT PRIMARY KEY,
            status TEXT,
            customer_id TEXT,
            assignee_id TEXT,
            channel TEXT,
            inbox_id TEXT,
            created_at TEXT,
            started_at TEXT,
            ended_at TEXT,
            updated_at TEXT,
            last_activity_at TEXT,
            meta TEXT NOT NULL DEFAULT '{}',
            labels TEXT NOT NULL DEFAULT '[]',
            custom_attributes TEXT NOT NULL DEFAULT '{}',
            additional_attributes TEXT NOT NULL DEFAULT '{}'
        );

        CREATE INDEX IF NOT EXISTS idx_conversations_status
        ON conversations(status);

        CREATE INDEX IF NOT EXISTS idx_conversations_last_activity
        ON conversations(last_activity_at);

        CREATE TABLE IF NOT EXISTS messages (
            id TEXT PRIMARY KEY,
            conversation_id TEXT NOT NULL,
            sender_id TEXT,
            sender_type TEXT,
            message_type TEXT,
            content TEXT,
            content_type TEXT,
            private INTEGER NOT NULL DEFAULT 0,
            created_at TEXT,
            updated_at TEXT,
            content_attributes TEXT NOT NULL DEFAULT '{}',
            attachments TEXT NOT NULL DEFAULT '[]',
            additional_attributes TEXT NOT NULL DEFAULT '{}'
        );

        CREATE INDEX IF NOT EXISTS idx_messages_conversation
        ON messages(conversation_id);

        CREATE INDEX IF NOT EXISTS idx_messages_sender
        ON messages(sender_id) WHERE sender_id IS NOT NULL;

        CREATE TABLE IF NOT EXISTS senders (
            id TEXT PRIMARY KEY,
            name TEXT,
            email TEXT,
            phone_number TEXT,
            role TEXT,
            avatar_url TEXT,
            availability TEXT,
            custom_attributes TEXT NOT NULL DEFAULT '{}',
            additional_attributes TEXT NOT NULL DEFAULT '{}'
        );
"""
# Messages reference conversations by ID only. Message and conversation
# saves run concurrently, so no FOREIGN KEY constraint is declared.


async def ensure_schema(conn: aiosqlite.Connection) -> None:
    """Create tables on a fresh database; refuse databases from newer releases."""
    cursor = await conn.execute("PRAGMA user_version")
    row = await cursor.fetchone()
    current_version = row[0] if row else 0

    if current_version == 0:
        await conn.executescript(SCHEMA_DDL)
        await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await conn.commit()
        logger.debug("schema_created", version=SCHEMA_VERSION)
    elif current_version > SCHEMA_VERSION:
        raise DatabaseError(
            f"Unsupported DB schema version {current_version} (expected {SCHEMA_VERSION})"
        )


__all__ = ["SCHEMA_VERSION", "SCHEMA_DDL", "ensure_schema"]
