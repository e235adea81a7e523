"""In-memory collaborators for pipeline tests."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

from supportsync.errors import DatabaseError
from supportsync.storage.records import Record
from supportsync.types import Entity


class FakeStore:
    """Records upserts in dicts and measures write concurrency.

    ``fail`` holds ``(table, id)`` pairs whose upsert raises ``DatabaseError``.
    """

    def __init__(self, *, delay: float = 0.0, fail: set[tuple[str, str]] | None = None) -> None:
        self.delay = delay
        self.fail = fail or set()
        self.rows: dict[str, dict[str, Record]] = {entity.value: {} for entity in Entity}
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._by_conversation: dict[str, int] = defaultdict(int)
        self.max_by_conversation: dict[str, int] = defaultdict(int)

    async def upsert(self, table: str | Entity, record: Record) -> None:
        table = Entity(table).value
        self.calls.append((table, record.id))
        conversation_id = getattr(record, "conversation_id", None)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if conversation_id is not None:
            self._by_conversation[conversation_id] += 1
            self.max_by_conversation[conversation_id] = max(
                self.max_by_conversation[conversation_id], self._by_conversation[conversation_id]
            )
        try:
            await asyncio.sleep(self.delay)
            if (table, record.id) in self.fail:
                raise DatabaseError(f"{table} write refused for {record.id}")
            self.rows[table][record.id] = record
        finally:
            self.in_flight -= 1
            if conversation_id is not None:
                self._by_conversation[conversation_id] -= 1

    def count(self, table: str) -> int:
        return len(self.rows[table])


class FakeSource:
    """Serves canned conversations and messages.

    ``broken`` conversation IDs make ``list_messages`` raise, which the real
    client never does; it stands in for an unexpected bug in a source.
    """

    def __init__(
        self,
        conversations: list[dict[str, Any]] | None = None,
        messages: dict[str, list[dict[str, Any]]] | None = None,
        *,
        delay: float = 0.0,
        broken: set[str] | None = None,
    ) -> None:
        self.conversations = conversations or []
        self.messages = messages or {}
        self.delay = delay
        self.broken = broken or set()
        self.windows: list[tuple[Any, Any]] = []
        self.message_requests: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_conversations(self, window_start: Any, window_end: Any) -> list[dict[str, Any]]:
        self.windows.append((window_start, window_end))
        return list(self.conversations)

    async def list_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        self.message_requests.append(conversation_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if conversation_id in self.broken:
                raise RuntimeError(f"source exploded on {conversation_id}")
            return list(self.messages.get(conversation_id, []))
        finally:
            self.in_flight -= 1


def make_conversation(conversation_id: Any, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"id": conversation_id, "status": "open"}
    payload.update(extra)
    return payload


def make_message(message_id: Any, sender_id: Any | None = None, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"id": message_id, "content": f"message {message_id}", "message_type": "incoming"}
    if sender_id is not None:
        payload["sender"] = {"id": sender_id, "name": f"Sender {sender_id}", "type": "contact"}
    payload.update(extra)
    return payload
