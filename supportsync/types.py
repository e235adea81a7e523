"""Type aliases and enums for supportsync."""
from __future__ import annotations

from enum import Enum
from typing import NewType

# Semantic ID types - provides compile-time distinction
ConversationId = NewType("ConversationId", str)
MessageId = NewType("MessageId", str)
SenderId = NewType("SenderId", str)


class Entity(str, Enum):
    """Persisted entity kinds; values double as table names."""
    CONVERSATION = "conversations"
    MESSAGE = "messages"
    SENDER = "senders"

    def __str__(self) -> str:
        return self.value


class MessageSource(str, Enum):
    """Where the pipeline takes a conversation's messages from."""
    AUTO = "auto"
    EMBEDDED = "embedded"
    FETCH = "fetch"

    def __str__(self) -> str:
        return self.value
