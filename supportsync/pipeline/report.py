"""Structured result of one ingestion run."""

from __future__ import annotations

from pydantic import BaseModel, Field

from supportsync.types import Entity


class EntityCounts(BaseModel):
    attempted: int = 0
    saved: int = 0
    failed: int = 0
    skipped: int = 0


class Failure(BaseModel):
    entity: Entity
    record_id: str | None
    conversation_id: str | None
    error: str


class RunReport(BaseModel):
    run_id: str
    window_start: str | None = None
    window_end: str | None = None
    fetched: int = 0
    conversations: EntityCounts = Field(default_factory=EntityCounts)
    messages: EntityCounts = Field(default_factory=EntityCounts)
    senders: EntityCounts = Field(default_factory=EntityCounts)
    fetch_failures: int = 0
    failures: list[Failure] = []
    source: dict[str, object] = {}
    cancelled: bool = False
    duration_ms: int = 0

    def counts_for(self, entity: Entity) -> EntityCounts:
        if entity is Entity.CONVERSATION:
            return self.conversations
        if entity is Entity.MESSAGE:
            return self.messages
        return self.senders

    def record_failure(
        self,
        entity: Entity,
        record_id: str | None,
        conversation_id: str | None,
        error: BaseException,
    ) -> None:
        self.counts_for(entity).failed += 1
        self.failures.append(
            Failure(
                entity=entity,
                record_id=record_id,
                conversation_id=conversation_id,
                error=f"{type(error).__name__}: {error}",
            )
        )

    def record_fetch_failure(self, conversation_id: str | None, error: BaseException) -> None:
        """A conversation's message list could not be obtained; no message unit was attempted."""
        self.fetch_failures += 1
        self.failures.append(
            Failure(
                entity=Entity.MESSAGE,
                record_id=None,
                conversation_id=conversation_id,
                error=f"{type(error).__name__}: {error}",
            )
        )

    @property
    def failed_ids(self) -> dict[str, list[str]]:
        """Failed record IDs grouped by table."""
        grouped: dict[str, list[str]] = {entity.value: [] for entity in Entity}
        for failure in self.failures:
            if failure.record_id is not None:
                grouped[failure.entity.value].append(failure.record_id)
        return grouped

    @property
    def ok(self) -> bool:
        return not self.failures and not self.cancelled

    def summary(self) -> dict[str, int]:
        """Flat counters for the per-run log line."""
        flat: dict[str, int] = {"fetched": self.fetched, "fetch_failures": self.fetch_failures}
        for entity in Entity:
            counts = self.counts_for(entity)
            for name, value in counts.model_dump().items():
                flat[f"{entity.value}_{name}"] = value
        return flat


__all__ = ["RunReport", "EntityCounts", "Failure"]
