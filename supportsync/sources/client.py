"""Async HTTP client for the remote support API.

``list_conversations`` and ``list_messages`` are fail-soft: any transport
error or non-2xx answer is logged, counted in ``metrics`` and turned into an
empty list so a broken upstream never aborts a run.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from types import TracebackType
from typing import TYPE_CHECKING, Any

import httpx

from supportsync.config import DEFAULT_ENVELOPE
from supportsync.errors import SourceApiError, SourceError
from supportsync.lib.log import get_logger
from supportsync.lib.timestamps import format_timestamp

if TYPE_CHECKING:
    from supportsync.config import Settings

LOGGER = get_logger(__name__)

# Envelope discovery descends at most this many levels ({"data": {"payload": [...]}}).
_MAX_ENVELOPE_DEPTH = 2


@dataclass
class SourceMetrics:
    requests: int = 0
    failures: int = 0
    last_error: str | None = None
    operations: dict[str, dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"requests": 0, "failures": 0})
    )

    def record(self, operation: str, error: Exception | None = None) -> None:
        self.requests += 1
        op_stats = self.operations[operation]
        op_stats["requests"] += 1
        if error is not None:
            self.failures += 1
            op_stats["failures"] += 1
            self.last_error = str(error)

    def snapshot(self) -> dict[str, Any]:
        return {
            "requests": self.requests,
            "failures": self.failures,
            "lastError": self.last_error,
            "operations": {k: dict(v) for k, v in self.operations.items()},
        }


@dataclass(frozen=True)
class ProbeResult:
    url: str
    status: int
    body: Any


def unwrap_envelope(body: Any, keys: tuple[str, ...] = DEFAULT_ENVELOPE, *, _depth: int = 0) -> list[dict[str, Any]] | None:
    """Return the record list inside an API response body.

    A bare list is returned as-is. For a mapping, each key in ``keys`` is
    tried in order; a list value wins, a mapping value is searched one level
    deeper. Non-mapping list items are dropped. Returns None when no list is
    found.
    """
    if isinstance(body, list):
        return [item for item in body if isinstance(item, dict)]
    if not isinstance(body, dict) or _depth >= _MAX_ENVELOPE_DEPTH:
        return None
    for key in keys:
        if key not in body:
            continue
        found = unwrap_envelope(body[key], keys, _depth=_depth + 1)
        if found is not None:
            return found
    return None


def _raise_for_status(resp: httpx.Response) -> None:
    """Raise SourceApiError for non-2xx responses."""
    if resp.is_success:
        return
    message = f"HTTP {resp.status_code}"
    payload: Any = None
    try:
        payload = resp.json()
    except ValueError:
        text = resp.text.strip()
        if text:
            message = f"{message}: {text[:200]}"
    else:
        if isinstance(payload, dict):
            detail = payload.get("error") or payload.get("message")
            if isinstance(detail, dict):
                detail = detail.get("message")
            if isinstance(detail, str) and detail.strip():
                message = f"{message}: {detail}"
    raise SourceApiError(message, resp.status_code, payload)


def _record_id(item: dict[str, Any]) -> str | None:
    value = item.get("id")
    if value is None or isinstance(value, bool):
        return None
    return str(value)


class SupportApiClient:
    """Client for the conversations and messages endpoints.

    Use as an async context manager so the underlying ``httpx.AsyncClient``
    is closed when the run ends.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        conversations_path: str = "/conversations",
        messages_path: str = "/conversations/{conversation_id}/messages",
        envelope: tuple[str, ...] = DEFAULT_ENVELOPE,
        page_size: int = 100,
        max_pages: int = 20,
        timeout: float = 30.0,
        window_start_param: str = "from",
        window_end_param: str = "to",
        page_size_param: str = "limit",
        page_param: str = "page",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._conversations_path = conversations_path
        self._messages_path = messages_path
        self._envelope = envelope
        self._page_size = page_size
        self._max_pages = max_pages
        self._timeout = timeout
        self._window_start_param = window_start_param
        self._window_end_param = window_end_param
        self._page_size_param = page_size_param
        self._page_param = page_param
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self.metrics = SourceMetrics()

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> SupportApiClient:
        token = settings.api_token.get_secret_value() if settings.api_token else None
        return cls(
            settings.api_base_url,
            token,
            conversations_path=settings.conversations_path,
            messages_path=settings.messages_path,
            envelope=settings.response_envelope,
            page_size=settings.page_size,
            max_pages=settings.max_pages,
            timeout=settings.request_timeout,
            window_start_param=settings.window_start_param,
            window_end_param=settings.window_end_param,
            page_size_param=settings.page_size_param,
            page_param=settings.page_param,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def open(self) -> None:
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> SupportApiClient:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        if self._http is None:
            await self.open()
        assert self._http is not None
        try:
            return await self._http.get(path, params=params)
        except httpx.HTTPError as exc:
            raise SourceError(f"{type(exc).__name__} requesting {path}: {exc}") from exc

    async def _get_list(self, path: str, params: dict[str, Any], operation: str) -> list[dict[str, Any]]:
        try:
            resp = await self._get(path, params)
            _raise_for_status(resp)
            try:
                body = resp.json()
            except ValueError as exc:
                raise SourceError(f"Invalid JSON from {path}") from exc
        except SourceError as exc:
            self.metrics.record(operation, exc)
            raise
        self.metrics.record(operation)

        items = unwrap_envelope(body, self._envelope)
        if items is None:
            LOGGER.warning(
                "response_envelope_not_found",
                path=path,
                envelope=list(self._envelope),
                keys=sorted(body) if isinstance(body, dict) else type(body).__name__,
            )
            return []
        return items

    async def _paginate(self, path: str, params: dict[str, Any], operation: str) -> list[dict[str, Any]]:
        collected: list[dict[str, Any]] = []
        seen: set[str] = set()
        for page in range(1, self._max_pages + 1):
            page_params = {**params, self._page_size_param: self._page_size, self._page_param: page}
            items = await self._get_list(path, page_params, operation)
            new_items = []
            for item in items:
                item_id = _record_id(item)
                if item_id is not None and item_id in seen:
                    continue
                if item_id is not None:
                    seen.add(item_id)
                new_items.append(item)
            collected.extend(new_items)
            # A short page ends the listing; so does a page of repeats, which
            # means the API ignores the page parameter.
            if len(items) < self._page_size or not new_items:
                break
        else:
            LOGGER.warning("max_pages_reached", path=path, max_pages=self._max_pages, fetched=len(collected))
        return collected

    async def list_conversations(self, window_start: datetime, window_end: datetime) -> list[dict[str, Any]]:
        """Conversations active in ``[window_start, window_end]``; ``[]`` on failure."""
        params = {
            self._window_start_param: format_timestamp(window_start),
            self._window_end_param: format_timestamp(window_end),
        }
        try:
            conversations = await self._paginate(self._conversations_path, params, "list_conversations")
        except SourceError as exc:
            LOGGER.error("fetch_conversations_failed", error=str(exc), status=getattr(exc, "status", None))
            return []
        LOGGER.debug("conversations_fetched", count=len(conversations))
        return conversations

    async def list_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        """Messages of one conversation; ``[]`` on failure."""
        path = self._messages_path.format(conversation_id=conversation_id)
        try:
            messages = await self._get_list(path, {}, "list_messages")
        except SourceError as exc:
            LOGGER.error(
                "fetch_messages_failed",
                conversation_id=conversation_id,
                error=str(exc),
                status=getattr(exc, "status", None),
            )
            return []
        LOGGER.debug("messages_fetched", conversation_id=conversation_id, count=len(messages))
        return messages

    async def probe(self, conversation_id: str) -> ProbeResult:
        """Fetch a conversation's messages endpoint and return the raw answer.

        Not fail-soft: HTTP error statuses are returned, transport errors
        raise ``SourceError``. Meant for checking credentials and URLs.
        """
        path = self._messages_path.format(conversation_id=conversation_id)
        resp = await self._get(path)
        try:
            body: Any = resp.json()
        except ValueError:
            body = resp.text
        return ProbeResult(url=str(resp.request.url), status=resp.status_code, body=body)


__all__ = ["SupportApiClient", "SourceMetrics", "ProbeResult", "unwrap_envelope"]
