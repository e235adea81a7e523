"""Storage layer: SQLite schema, connection pool and upsert backend."""

from __future__ import annotations

from .backend import AsyncSQLiteBackend
from .pool import AsyncConnectionPool
from .records import RECORD_TYPES, ConversationRecord, MessageRecord, Record, SenderRecord
from .schema import SCHEMA_VERSION, ensure_schema

__all__ = [
    "AsyncSQLiteBackend",
    "AsyncConnectionPool",
    "ConversationRecord",
    "MessageRecord",
    "SenderRecord",
    "Record",
    "RECORD_TYPES",
    "SCHEMA_VERSION",
    "ensure_schema",
]
