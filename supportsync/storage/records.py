"""Normalized persistence records.

One pydantic model per table. Field order matches the column order used by
the upserter; JSON-typed fields are serialized to text by ``to_row``.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, field_validator

from supportsync.lib.json import dumps as json_dumps
from supportsync.types import ConversationId, Entity, MessageId, SenderId


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity: ClassVar[Entity]
    json_fields: ClassVar[frozenset[str]] = frozenset()

    id: str

    @field_validator("id")
    @classmethod
    def non_empty_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("id cannot be empty")
        return v

    @classmethod
    def columns(cls) -> tuple[str, ...]:
        return tuple(cls.model_fields)

    def to_row(self) -> tuple[Any, ...]:
        row: list[Any] = []
        for name in self.columns():
            value = getattr(self, name)
            if name in self.json_fields:
                value = json_dumps(value)
            elif isinstance(value, bool):
                value = int(value)
            row.append(value)
        return tuple(row)


class ConversationRecord(_Record):
    entity: ClassVar[Entity] = Entity.CONVERSATION
    json_fields: ClassVar[frozenset[str]] = frozenset(
        {"meta", "labels", "custom_attributes", "additional_attributes"}
    )

    id: ConversationId
    status: str | None = None
    customer_id: str | None = None
    assignee_id: str | None = None
    channel: str | None = None
    inbox_id: str | None = None
    created_at: str | None = None
    started_at: str | None = None
    ended_at: str | None = None
    updated_at: str | None = None
    last_activity_at: str | None = None
    meta: dict[str, Any] = {}
    labels: list[Any] = []
    custom_attributes: dict[str, Any] = {}
    additional_attributes: dict[str, Any] = {}


class MessageRecord(_Record):
    entity: ClassVar[Entity] = Entity.MESSAGE
    json_fields: ClassVar[frozenset[str]] = frozenset(
        {"content_attributes", "attachments", "additional_attributes"}
    )

    id: MessageId
    conversation_id: ConversationId
    sender_id: str | None = None
    sender_type: str | None = None
    message_type: str | None = None
    content: str | None = None
    content_type: str | None = None
    private: bool = False
    created_at: str | None = None
    updated_at: str | None = None
    content_attributes: dict[str, Any] = {}
    attachments: list[Any] = []
    additional_attributes: dict[str, Any] = {}

    @field_validator("conversation_id")
    @classmethod
    def non_empty_conversation(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("conversation_id cannot be empty")
        return v


class SenderRecord(_Record):
    entity: ClassVar[Entity] = Entity.SENDER
    json_fields: ClassVar[frozenset[str]] = frozenset({"custom_attributes", "additional_attributes"})

    id: SenderId
    name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    role: str | None = None
    avatar_url: str | None = None
    availability: str | None = None
    custom_attributes: dict[str, Any] = {}
    additional_attributes: dict[str, Any] = {}


RECORD_TYPES: dict[Entity, type[_Record]] = {
    Entity.CONVERSATION: ConversationRecord,
    Entity.MESSAGE: MessageRecord,
    Entity.SENDER: SenderRecord,
}

Record = ConversationRecord | MessageRecord | SenderRecord

__all__ = [
    "ConversationRecord",
    "MessageRecord",
    "SenderRecord",
    "Record",
    "RECORD_TYPES",
]
