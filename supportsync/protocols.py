"""Protocol definitions for the pipeline's collaborators.

The ingestion pipeline only depends on these interfaces, so tests can hand
it in-memory fakes and the CLI can hand it the real HTTP client and SQLite
backend.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from supportsync.storage.records import Record
from supportsync.types import Entity


@runtime_checkable
class RecordStore(Protocol):
    """Storage that persists one normalized record with upsert semantics."""

    async def upsert(self, table: str | Entity, record: Record) -> None:
        """Insert the record or overwrite every non-key column on ID conflict.

        Must be safe to call concurrently for different IDs.

        Raises:
            DatabaseError: If the write fails
        """
        ...


@runtime_checkable
class ConversationSource(Protocol):
    """Remote source of conversations and messages.

    Both methods are fail-soft: transport and API errors are reported by the
    implementation and surface here as an empty list.
    """

    async def list_conversations(self, window_start: Any, window_end: Any) -> list[dict[str, Any]]:
        ...

    async def list_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        ...


__all__ = ["RecordStore", "ConversationSource"]
