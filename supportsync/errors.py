"""supportsync error hierarchy.

All project exceptions inherit from SupportSyncError, enabling:
- ``except SupportSyncError`` at top-level boundaries (CLI, watch loop)
- Fine-grained catches deeper in the stack (``except SourceApiError``)

Hierarchy:
    SupportSyncError
    ├── ConfigError
    ├── SourceError
    │   └── SourceApiError
    ├── DatabaseError
    │   └── PoolTimeoutError
    └── RecordError
"""

from __future__ import annotations


class SupportSyncError(Exception):
    """Base class for all supportsync errors."""


class ConfigError(SupportSyncError):
    """Settings could not be loaded or failed validation."""


class SourceError(SupportSyncError):
    """Transport-level failure talking to the remote support API."""


class SourceApiError(SourceError):
    """The remote API answered with a non-2xx status."""

    def __init__(self, message: str, status: int, payload: object | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload


class DatabaseError(SupportSyncError):
    """Base class for database errors."""


class PoolTimeoutError(DatabaseError):
    """No pooled connection became free within the acquire timeout."""


class RecordError(SupportSyncError):
    """A source record cannot be normalized (no usable ID, wrong shape)."""

    def __init__(self, entity: str, message: str) -> None:
        super().__init__(f"{entity}: {message}")
        self.entity = entity
