"""Bounded-concurrency ingestion of conversations, messages and senders.

Two independent limits apply:

- ``conversation_limit`` (outer) caps how many conversations are being
  processed at once. Fetching a conversation's messages happens inside this
  slot, so it also caps concurrent message requests against the remote API.
- ``message_limit`` (inner) is created per conversation and caps how many of
  that conversation's message/sender saves are in flight at once.

Every unit of work (one conversation record, one message, one sender) is
attempted exactly once. Failures are caught at the unit that raised them,
logged with the conversation ID and record ID, and recorded on the
``RunReport``; siblings and the overall run always continue. A set ``stop``
event prevents new units from starting while in-flight writes finish.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from supportsync.errors import SupportSyncError
from supportsync.lib.log import get_logger
from supportsync.pipeline.normalize import (
    embedded_messages,
    extract_assignee,
    extract_sender,
    normalize_conversation,
    normalize_message,
    normalize_sender,
    record_id_of,
)
from supportsync.pipeline.report import RunReport
from supportsync.protocols import ConversationSource, RecordStore
from supportsync.types import Entity, MessageSource

LOGGER = get_logger(__name__)

DEFAULT_CONVERSATION_LIMIT = 3
DEFAULT_MESSAGE_LIMIT = 5


def _stopped(stop: asyncio.Event | None) -> bool:
    return stop is not None and stop.is_set()


class IngestionPipeline:
    """Persist conversations and their nested messages/senders.

    The pipeline holds no per-run state; one instance can serve any number
    of sequential or concurrent ``ingest`` calls.

    Example:
        async with AsyncSQLiteBackend(db_path) as store, SupportApiClient(url, token) as client:
            pipeline = IngestionPipeline(store, client, conversation_limit=3, message_limit=5)
            report = await pipeline.ingest(await client.list_conversations(start, end))
    """

    def __init__(
        self,
        store: RecordStore,
        source: ConversationSource | None = None,
        *,
        conversation_limit: int = DEFAULT_CONVERSATION_LIMIT,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
        message_source: MessageSource | str = MessageSource.AUTO,
    ) -> None:
        if conversation_limit < 1 or message_limit < 1:
            raise ValueError("concurrency limits must be at least 1")
        message_source = MessageSource(message_source)
        if message_source is MessageSource.FETCH and source is None:
            raise ValueError("message_source='fetch' requires a source client")
        self._store = store
        self._source = source
        self._conversation_limit = conversation_limit
        self._message_limit = message_limit
        self._message_source = message_source

    async def ingest(
        self,
        conversations: Sequence[Any],
        *,
        stop: asyncio.Event | None = None,
        report: RunReport | None = None,
    ) -> RunReport:
        """Process every conversation and return once all were attempted."""
        if report is None:
            report = RunReport(run_id=uuid.uuid4().hex, fetched=len(conversations))
        started = time.monotonic()
        outer = asyncio.Semaphore(self._conversation_limit)

        async def guarded(raw: Any) -> None:
            async with outer:
                if _stopped(stop):
                    report.conversations.skipped += 1
                    return
                await self._process_conversation(raw, report, stop)

        await asyncio.gather(*(guarded(raw) for raw in conversations))

        report.cancelled = report.cancelled or _stopped(stop)
        report.duration_ms = int((time.monotonic() - started) * 1000)
        return report

    async def _process_conversation(self, raw: Any, report: RunReport, stop: asyncio.Event | None) -> None:
        conversation_id = record_id_of(raw)
        log = LOGGER.bind(conversation_id=conversation_id)
        report.conversations.attempted += 1
        try:
            record = normalize_conversation(raw)
            await self._store.upsert(Entity.CONVERSATION, record)
        except Exception as exc:
            # The conversation is the failed unit; its messages are not attempted.
            report.record_failure(Entity.CONVERSATION, conversation_id, conversation_id, exc)
            _log_failure(log, "conversation_save_failed", exc)
            return
        report.conversations.saved += 1
        conversation_id = record.id

        if _stopped(stop):
            log.debug("conversation_messages_skipped")
            return

        try:
            messages = await self._messages_for(raw, conversation_id)
        except Exception as exc:
            report.record_fetch_failure(conversation_id, exc)
            _log_failure(log, "fetch_messages_failed", exc)
            messages = []

        senders: dict[str, Mapping[str, Any]] = {}
        for raw_message in messages:
            sender = extract_sender(raw_message) if isinstance(raw_message, Mapping) else None
            if sender is not None:
                senders[str(sender["id"]).strip()] = sender
        assignee = extract_assignee(raw)
        if assignee is not None:
            senders[str(assignee["id"]).strip()] = assignee

        inner = asyncio.Semaphore(self._message_limit)
        units: list[Awaitable[None]] = [
            self._run_unit(
                inner,
                stop,
                report,
                Entity.MESSAGE,
                lambda raw_message=raw_message: self._save_message(raw_message, conversation_id, report, log),
            )
            for raw_message in messages
        ]
        units.extend(
            self._run_unit(
                inner,
                stop,
                report,
                Entity.SENDER,
                lambda sender_id=sender_id, sender=sender: self._save_sender(
                    sender_id, sender, conversation_id, report, log
                ),
            )
            for sender_id, sender in senders.items()
        )
        await asyncio.gather(*units)
        log.debug("conversation_processed", messages=len(messages), senders=len(senders))

    async def _messages_for(self, raw: Any, conversation_id: str) -> list[Any]:
        # An embedded list may hold only the latest message; a source is authoritative.
        if self._message_source is MessageSource.EMBEDDED or self._source is None:
            embedded = embedded_messages(raw) if isinstance(raw, Mapping) else None
            return embedded or []
        return await self._source.list_messages(conversation_id)

    async def _run_unit(
        self,
        limiter: asyncio.Semaphore,
        stop: asyncio.Event | None,
        report: RunReport,
        entity: Entity,
        work: Callable[[], Awaitable[None]],
    ) -> None:
        async with limiter:
            if _stopped(stop):
                report.counts_for(entity).skipped += 1
                return
            await work()

    async def _save_message(self, raw: Any, conversation_id: str, report: RunReport, log: Any) -> None:
        message_id = record_id_of(raw)
        report.messages.attempted += 1
        try:
            await self._store.upsert(Entity.MESSAGE, normalize_message(raw, conversation_id))
        except Exception as exc:
            report.record_failure(Entity.MESSAGE, message_id, conversation_id, exc)
            _log_failure(log, "message_save_failed", exc, message_id=message_id)
            return
        report.messages.saved += 1

    async def _save_sender(
        self, sender_id: str, raw: Mapping[str, Any], conversation_id: str, report: RunReport, log: Any
    ) -> None:
        report.senders.attempted += 1
        try:
            await self._store.upsert(Entity.SENDER, normalize_sender(raw))
        except Exception as exc:
            report.record_failure(Entity.SENDER, sender_id, conversation_id, exc)
            _log_failure(log, "sender_save_failed", exc, sender_id=sender_id)
            return
        report.senders.saved += 1


def _log_failure(log: Any, event: str, exc: Exception, **context: Any) -> None:
    if isinstance(exc, SupportSyncError):
        log.error(event, error=str(exc), error_type=type(exc).__name__, **context)
    else:
        log.error(event, error=str(exc), error_type=type(exc).__name__, exc_info=exc, **context)


__all__ = ["IngestionPipeline", "DEFAULT_CONVERSATION_LIMIT", "DEFAULT_MESSAGE_LIMIT"]
