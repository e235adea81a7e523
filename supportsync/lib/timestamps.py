"""Timestamp parsing and formatting.

Handles the timestamp shapes support APIs return:
- Unix epoch seconds or milliseconds as int/float
- Unix epoch as string
- ISO 8601 strings, with or without offset

All output uses UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone

# Epoch values above this are taken to be milliseconds (year 5138 in seconds).
_EPOCH_MS_THRESHOLD = 1e11


def _from_epoch(value: float) -> datetime:
    if abs(value) >= _EPOCH_MS_THRESHOLD:
        value = value / 1000.0
    return datetime.fromtimestamp(value, tz=timezone.utc)


def parse_timestamp(value: str | int | float | None) -> datetime | None:
    """Parse a timestamp from various formats to an aware UTC datetime.

    Returns None when the value is missing or cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        if isinstance(value, (int, float)):
            return _from_epoch(float(value))

        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if text.replace(".", "", 1).isdigit():
                return _from_epoch(float(text))
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
    except (ValueError, OSError, OverflowError):
        # OSError/OverflowError for out-of-range epochs
        pass

    return None


def format_timestamp(ts: datetime) -> str:
    """Format a datetime as ISO 8601 UTC with millisecond precision and ``Z`` suffix."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_timestamp(value: object) -> str | None:
    """Normalize a raw timestamp field for storage.

    Parseable values become ``format_timestamp`` output. Unparseable
    non-empty strings are kept verbatim rather than dropped.
    """
    parsed = parse_timestamp(value)  # type: ignore[arg-type]
    if parsed is not None:
        return format_timestamp(parsed)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


__all__ = ["parse_timestamp", "format_timestamp", "normalize_timestamp"]
