"""Configuration using Pydantic Settings for automatic env var support."""
from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict, SettingsError

from supportsync.errors import ConfigError
from supportsync.lib.json import loads as json_loads
from supportsync.paths import default_db_path
from supportsync.types import MessageSource

DEFAULT_BASE_URL = "https://api.gapify.ai/v1"
DEFAULT_ENVELOPE = ("data", "payload")


class Settings(BaseSettings):
    """Connector settings read from ``SUPPORTSYNC_*`` variables or ``.env``."""

    # Remote API
    api_base_url: str = DEFAULT_BASE_URL
    api_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("SUPPORTSYNC_API_TOKEN", "GAPI_TOKEN"),
    )
    conversations_path: str = "/conversations"
    messages_path: str = Field(
        default="/conversations/{conversation_id}/messages",
        description="Path template; must contain '{conversation_id}'.",
    )
    response_envelope: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_ENVELOPE,
        description="Keys tried, in order, to unwrap list responses.",
    )
    window_start_param: str = "from"
    window_end_param: str = "to"
    page_size_param: str = "limit"
    page_param: str = "page"
    page_size: int = Field(default=100, ge=1)
    max_pages: int = Field(default=20, ge=1)
    request_timeout: float = Field(default=30.0, gt=0)

    # Storage
    db_path: Path = Field(default_factory=default_db_path)
    pool_size: int = Field(default=10, ge=1)
    acquire_timeout: float = Field(default=30.0, gt=0)

    # Pipeline
    conversation_limit: int = Field(default=3, ge=1)
    message_limit: int = Field(default=5, ge=1)
    message_source: MessageSource = MessageSource.AUTO

    # Run driver
    timezone: str = "UTC"
    lookback_hours: float | None = Field(
        default=None,
        gt=0,
        description="When set, the window is the last N hours instead of the current day.",
    )
    interval_seconds: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="SUPPORTSYNC_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("response_envelope", mode="before")
    @classmethod
    def split_envelope(cls, v: Any) -> Any:
        if isinstance(v, str):
            if v.lstrip().startswith("["):
                return tuple(json_loads(v))
            keys = tuple(part.strip() for part in v.split(",") if part.strip())
            return keys or DEFAULT_ENVELOPE
        return v

    @field_validator("messages_path")
    @classmethod
    def require_placeholder(cls, v: str) -> str:
        if "{conversation_id}" not in v:
            raise ValueError("messages_path must contain '{conversation_id}'")
        return v

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {v!r}") from exc
        return v

    @field_validator("db_path", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_settings(**overrides: Any) -> Settings:
    """Build settings from the environment plus explicit overrides.

    Overrides whose value is None are ignored so CLI options can be passed
    through unconditionally.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Settings(**values)
    except (ValidationError, SettingsError) as exc:
        raise ConfigError(str(exc)) from exc


__all__ = ["Settings", "load_settings", "DEFAULT_BASE_URL", "DEFAULT_ENVELOPE"]
