"""Central JSON utilities using orjson."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from typing import Any

import orjson


def _default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    raise TypeError(f"Object of type {obj.__class__.__name__} is not JSON serializable")


def dumps(obj: Any, *, default: Callable[[Any], Any] | None = None) -> str:
    """Dump object to a compact JSON string.

    Keys are sorted so an unchanged attribute map always serializes to the
    same text.
    """
    return orjson.dumps(obj, default=default or _default, option=orjson.OPT_SORT_KEYS).decode("utf-8")


def loads(obj: str | bytes) -> Any:
    """Load object from JSON string or bytes."""
    return orjson.loads(obj)


__all__ = ["dumps", "loads"]
