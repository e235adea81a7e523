"""Tests for the support API client.

All HTTP traffic goes through ``httpx.MockTransport``; no network access.
"""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from supportsync.config import load_settings
from supportsync.errors import SourceApiError, SourceError
from supportsync.sources.client import SupportApiClient, _raise_for_status, unwrap_envelope

BASE_URL = "https://api.test/v1"
START = datetime(2024, 3, 1, tzinfo=timezone.utc)
END = datetime(2024, 3, 1, 23, 59, 59, 999000, tzinfo=timezone.utc)


def _client(handler, **kwargs) -> SupportApiClient:
    return SupportApiClient(BASE_URL, kwargs.pop("token", "secret"), transport=httpx.MockTransport(handler), **kwargs)


# =============================================================================
# Envelope unwrapping
# =============================================================================


class TestUnwrapEnvelope:
    def test_bare_list(self):
        assert unwrap_envelope([{"id": 1}, "junk", {"id": 2}]) == [{"id": 1}, {"id": 2}]

    def test_first_configured_key_wins(self):
        body = {"data": [{"id": 1}], "payload": [{"id": 2}]}
        assert unwrap_envelope(body, ("payload", "data")) == [{"id": 2}]

    def test_falls_through_to_second_key(self):
        assert unwrap_envelope({"payload": [{"id": 3}]}) == [{"id": 3}]

    def test_nested_envelope(self):
        body = {"data": {"meta": {"count": 1}, "payload": [{"id": 4}]}}
        assert unwrap_envelope(body) == [{"id": 4}]

    def test_missing_envelope_is_none(self):
        assert unwrap_envelope({"items": [{"id": 1}]}) is None
        assert unwrap_envelope("nope") is None

    def test_depth_is_bounded(self):
        body = {"data": {"data": {"data": [{"id": 1}]}}}
        assert unwrap_envelope(body) is None


# =============================================================================
# list_conversations
# =============================================================================


@pytest.mark.asyncio
async def test_list_conversations_sends_window_and_auth():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [{"id": 1}, {"id": 2}]})

    async with _client(handler) as client:
        conversations = await client.list_conversations(START, END)

    assert conversations == [{"id": 1}, {"id": 2}]
    request = seen[0]
    assert request.url.path == "/v1/conversations"
    assert request.url.params["from"] == "2024-03-01T00:00:00.000Z"
    assert request.url.params["to"] == "2024-03-01T23:59:59.999Z"
    assert request.url.params["page"] == "1"
    assert request.headers["Authorization"] == "Bearer secret"
    assert client.metrics.requests == 1
    assert client.metrics.failures == 0


@pytest.mark.asyncio
async def test_no_token_sends_no_auth_header():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    async with _client(handler, token=None) as client:
        await client.list_conversations(START, END)

    assert "Authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_custom_param_names():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"payload": []})

    async with _client(handler, window_start_param="since", window_end_param="until") as client:
        await client.list_conversations(START, END)

    assert "since" in seen[0].url.params
    assert "until" in seen[0].url.params
    assert "from" not in seen[0].url.params


@pytest.mark.asyncio
async def test_pagination_until_short_page():
    pages = {
        "1": [{"id": 1}, {"id": 2}],
        "2": [{"id": 3}, {"id": 4}],
        "3": [{"id": 5}],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["limit"] == "2"
        return httpx.Response(200, json={"data": pages[request.url.params["page"]]})

    async with _client(handler, page_size=2) as client:
        conversations = await client.list_conversations(START, END)

    assert [c["id"] for c in conversations] == [1, 2, 3, 4, 5]
    assert client.metrics.requests == 3


@pytest.mark.asyncio
async def test_pagination_stops_when_api_ignores_page():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"data": [{"id": 1}, {"id": 2}]})

    async with _client(handler, page_size=2) as client:
        conversations = await client.list_conversations(START, END)

    assert [c["id"] for c in conversations] == [1, 2]
    assert calls == 2


@pytest.mark.asyncio
async def test_pagination_respects_max_pages():
    def handler(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params["page"])
        return httpx.Response(200, json=[{"id": page * 10}, {"id": page * 10 + 1}])

    async with _client(handler, page_size=2, max_pages=3) as client:
        conversations = await client.list_conversations(START, END)

    assert len(conversations) == 6
    assert client.metrics.requests == 3


@pytest.mark.asyncio
async def test_list_conversations_server_error_is_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    async with _client(handler) as client:
        assert await client.list_conversations(START, END) == []

    assert client.metrics.failures == 1
    assert client.metrics.last_error == "HTTP 500: boom"


@pytest.mark.asyncio
async def test_list_conversations_transport_error_is_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        assert await client.list_conversations(START, END) == []

    assert client.metrics.failures == 1
    assert "ConnectError" in client.metrics.last_error


@pytest.mark.asyncio
async def test_failure_after_first_page_discards_partial_result():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["page"] == "1":
            return httpx.Response(200, json=[{"id": 1}, {"id": 2}])
        return httpx.Response(502, text="bad gateway")

    async with _client(handler, page_size=2) as client:
        assert await client.list_conversations(START, END) == []


@pytest.mark.asyncio
async def test_invalid_json_is_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    async with _client(handler) as client:
        assert await client.list_conversations(START, END) == []
    assert client.metrics.failures == 1


@pytest.mark.asyncio
async def test_unrecognized_envelope_is_empty_without_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": [{"id": 1}]})

    async with _client(handler) as client:
        assert await client.list_conversations(START, END) == []
    assert client.metrics.failures == 0


@pytest.mark.asyncio
async def test_configured_envelope_keys():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": [{"id": 1}]})

    async with _client(handler, envelope=("results",)) as client:
        assert await client.list_conversations(START, END) == [{"id": 1}]


# =============================================================================
# list_messages
# =============================================================================


@pytest.mark.asyncio
async def test_list_messages_uses_path_template():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"payload": [{"id": 10}, {"id": 11}]})

    async with _client(handler) as client:
        messages = await client.list_messages("42")

    assert seen == ["/v1/conversations/42/messages"]
    assert [m["id"] for m in messages] == [10, 11]
    assert client.metrics.operations["list_messages"] == {"requests": 1, "failures": 0}


@pytest.mark.asyncio
async def test_list_messages_error_is_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "not found"})

    async with _client(handler) as client:
        assert await client.list_messages("42") == []

    snapshot = client.metrics.snapshot()
    assert snapshot["failures"] == 1
    assert snapshot["operations"]["list_messages"]["failures"] == 1
    assert snapshot["lastError"] == "HTTP 404: not found"


@pytest.mark.asyncio
async def test_timeout_is_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler) as client:
        assert await client.list_messages("42") == []
    assert "ReadTimeout" in client.metrics.last_error


# =============================================================================
# probe and helpers
# =============================================================================


@pytest.mark.asyncio
async def test_probe_returns_status_and_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "invalid token"})

    async with _client(handler) as client:
        result = await client.probe("42")

    assert result.status == 401
    assert result.body == {"error": "invalid token"}
    assert result.url == f"{BASE_URL}/conversations/42/messages"


@pytest.mark.asyncio
async def test_probe_raises_on_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    async with _client(handler) as client:
        with pytest.raises(SourceError):
            await client.probe("42")


def test_raise_for_status_keeps_status_and_payload():
    response = httpx.Response(429, json={"error": {"message": "slow down"}})
    with pytest.raises(SourceApiError) as info:
        _raise_for_status(response)
    assert info.value.status == 429
    assert info.value.payload == {"error": {"message": "slow down"}}
    assert str(info.value) == "HTTP 429: slow down"


@pytest.mark.asyncio
async def test_from_settings(monkeypatch):
    monkeypatch.setenv("GAPI_TOKEN", "from-env")
    settings = load_settings(
        api_base_url="https://support.example/api/",
        messages_path="/threads/{conversation_id}/items",
        response_envelope="items",
    )
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"items": [{"id": "m1"}]})

    async with SupportApiClient.from_settings(settings, transport=httpx.MockTransport(handler)) as client:
        assert await client.list_messages("c9") == [{"id": "m1"}]

    assert str(seen[0].url) == "https://support.example/api/threads/c9/items"
    assert seen[0].headers["Authorization"] == "Bearer from-env"
