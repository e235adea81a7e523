"""Map raw API payloads onto persistence records.

Each entity has exactly one defaulting table, ``column -> FieldRule``. A rule
lists the dotted paths the value may live under (support APIs nest the same
field differently depending on endpoint and version) and the default used
when none of them holds a value. Nothing outside these tables decides a
default.

Missing optional data never raises. ``RecordError`` is raised only for a
payload that is not a mapping or has no usable ``id``.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from supportsync.errors import RecordError
from supportsync.lib.timestamps import normalize_timestamp
from supportsync.storage.records import ConversationRecord, MessageRecord, SenderRecord
from supportsync.types import Entity

_MISSING = object()


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    return text if text != "" else None


def _identifier(value: Any) -> str | None:
    if value is None or isinstance(value, (bool, dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _mapping(value: Any) -> dict[str, Any] | None:
    return dict(value) if isinstance(value, Mapping) else None


def _sequence(value: Any) -> list[Any] | None:
    return list(value) if isinstance(value, (list, tuple)) else None


def _flag(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in {"true", "1", "yes"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "0", "no"}:
        return False
    return None


def _channel(value: Any) -> str | None:
    # Some payloads carry the channel as {"type": "Channel::WebWidget", ...}
    if isinstance(value, Mapping):
        value = value.get("type") or value.get("name")
    return _text(value)


@dataclass(frozen=True)
class FieldRule:
    paths: tuple[str, ...]
    default: Any = None
    coerce: Callable[[Any], Any] = _text


def _rule(*paths: str, default: Any = None, coerce: Callable[[Any], Any] = _text) -> FieldRule:
    return FieldRule(paths=paths, default=default, coerce=coerce)


def _ts(*paths: str) -> FieldRule:
    return FieldRule(paths=paths, default=None, coerce=normalize_timestamp)


CONVERSATION_FIELDS: dict[str, FieldRule] = {
    "status": _rule("status", "state"),
    "customer_id": _rule(
        "customer_id", "contact_id", "meta.sender.id", "contact.id", coerce=_identifier
    ),
    "assignee_id": _rule("assignee_id", "meta.assignee.id", "assignee.id", coerce=_identifier),
    "channel": _rule("meta.channel", "channel", coerce=_channel),
    "inbox_id": _rule("inbox_id", "inbox.id", coerce=_identifier),
    "created_at": _ts("created_at"),
    "started_at": _ts("started_at", "first_reply_created_at"),
    "ended_at": _ts("ended_at", "resolved_at"),
    "updated_at": _ts("updated_at"),
    "last_activity_at": _ts("last_activity_at", "timestamp"),
    "meta": _rule("meta", default={}, coerce=_mapping),
    "labels": _rule("labels", "tags", default=[], coerce=_sequence),
    "custom_attributes": _rule("custom_attributes", default={}, coerce=_mapping),
    "additional_attributes": _rule("additional_attributes", default={}, coerce=_mapping),
}

MESSAGE_FIELDS: dict[str, FieldRule] = {
    "sender_id": _rule("sender.id", "sender_id", coerce=_identifier),
    "sender_type": _rule("sender.type", "sender_type"),
    "message_type": _rule("message_type"),
    "content": _rule("content", "text", "body"),
    "content_type": _rule("content_type"),
    "private": _rule("private", default=False, coerce=_flag),
    "created_at": _ts("created_at", "sent_at", "timestamp"),
    "updated_at": _ts("updated_at"),
    "content_attributes": _rule("content_attributes", default={}, coerce=_mapping),
    "attachments": _rule("attachments", default=[], coerce=_sequence),
    "additional_attributes": _rule("additional_attributes", default={}, coerce=_mapping),
}

SENDER_FIELDS: dict[str, FieldRule] = {
    "name": _rule("name", "available_name", "display_name"),
    "email": _rule("email"),
    "phone_number": _rule("phone_number", "phone"),
    "role": _rule("type", "role"),
    "avatar_url": _rule("avatar_url", "thumbnail"),
    "availability": _rule("availability_status", "availability"),
    "custom_attributes": _rule("custom_attributes", default={}, coerce=_mapping),
    "additional_attributes": _rule("additional_attributes", default={}, coerce=_mapping),
}


def lookup(raw: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path in nested mappings; ``_MISSING`` when absent."""
    node: Any = raw
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return _MISSING
        node = node[part]
    return node


def apply_rules(raw: Mapping[str, Any], rules: Mapping[str, FieldRule]) -> dict[str, Any]:
    """Build a column -> value dict from ``raw`` using a defaulting table."""
    values: dict[str, Any] = {}
    for column, rule in rules.items():
        value = None
        for path in rule.paths:
            found = lookup(raw, path)
            if found is _MISSING or found is None:
                continue
            value = rule.coerce(found)
            if value is not None:
                break
        values[column] = value if value is not None else copy.deepcopy(rule.default)
    return values


def _require_mapping(entity: Entity, raw: Any) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise RecordError(entity.value, f"expected an object, got {type(raw).__name__}")
    return raw


def _require_id(entity: Entity, raw: Mapping[str, Any]) -> str:
    record_id = _identifier(raw.get("id"))
    if record_id is None:
        raise RecordError(entity.value, "record has no id")
    return record_id


def _build(entity: Entity, factory: Callable[..., Any], **values: Any) -> Any:
    try:
        return factory(**values)
    except ValidationError as exc:
        raise RecordError(entity.value, str(exc)) from exc


def normalize_conversation(raw: Any) -> ConversationRecord:
    data = _require_mapping(Entity.CONVERSATION, raw)
    record_id = _require_id(Entity.CONVERSATION, data)
    return _build(
        Entity.CONVERSATION,
        ConversationRecord,
        id=record_id,
        **apply_rules(data, CONVERSATION_FIELDS),
    )


def normalize_message(raw: Any, conversation_id: str) -> MessageRecord:
    """Normalize a message, linking it to the conversation it was fetched under.

    The payload's own ``conversation_id`` is ignored.
    """
    data = _require_mapping(Entity.MESSAGE, raw)
    record_id = _require_id(Entity.MESSAGE, data)
    return _build(
        Entity.MESSAGE,
        MessageRecord,
        id=record_id,
        conversation_id=str(conversation_id),
        **apply_rules(data, MESSAGE_FIELDS),
    )


def normalize_sender(raw: Any) -> SenderRecord:
    data = _require_mapping(Entity.SENDER, raw)
    record_id = _require_id(Entity.SENDER, data)
    return _build(
        Entity.SENDER,
        SenderRecord,
        id=record_id,
        **apply_rules(data, SENDER_FIELDS),
    )


def _sender_shaped(value: Any) -> dict[str, Any] | None:
    if isinstance(value, Mapping) and _identifier(value.get("id")) is not None:
        return dict(value)
    return None


def extract_assignee(raw_conversation: Mapping[str, Any]) -> dict[str, Any] | None:
    """The conversation's assignee payload, if it is sender-shaped (has an id)."""
    for path in ("meta.assignee", "assignee"):
        found = _sender_shaped(lookup(raw_conversation, path))
        if found is not None:
            return found
    return None


def extract_sender(raw_message: Mapping[str, Any]) -> dict[str, Any] | None:
    """The message's embedded sender object, if it has an id.

    A flat ``sender_id`` without an object is only a reference; there is no
    sender data to persist.
    """
    return _sender_shaped(raw_message.get("sender"))


def embedded_messages(raw_conversation: Mapping[str, Any]) -> list[Any] | None:
    """Messages carried inside the conversation payload, or None if absent."""
    messages = raw_conversation.get("messages")
    if isinstance(messages, (list, tuple)):
        return list(messages)
    return None


def record_id_of(raw: Any) -> str | None:
    """Best-effort record ID for log context, never raising."""
    if isinstance(raw, Mapping):
        return _identifier(raw.get("id"))
    return None


__all__ = [
    "FieldRule",
    "CONVERSATION_FIELDS",
    "MESSAGE_FIELDS",
    "SENDER_FIELDS",
    "apply_rules",
    "lookup",
    "normalize_conversation",
    "normalize_message",
    "normalize_sender",
    "extract_assignee",
    "extract_sender",
    "embedded_messages",
    "record_id_of",
]
