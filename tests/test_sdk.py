"""Tests for the dashboard SDK client."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from my_dashboard.sdk import APIError, ConfigurationError, DashboardClient, NetworkError
from my_dashboard.sdk.client import backoff_delay

pytestmark = pytest.mark.unit


@pytest.fixture
def sleep(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    mock = AsyncMock()
    monkeypatch.setattr("my_dashboard.sdk.client.asyncio.sleep", mock)
    return mock


def _client(handler, **kwargs) -> DashboardClient:
    return DashboardClient(
        "http://dashboard.test/", "key-1", transport=httpx.MockTransport(handler), **kwargs
    )


class TestConstruction:
    @pytest.mark.parametrize(
        ("base_url", "api_key", "kwargs"),
        [("", "k", {}), ("http://x", "", {}), ("http://x", "k", {"max_retries": -1})],
    )
    def test_invalid_settings(self, base_url, api_key, kwargs):
        with pytest.raises(ConfigurationError):
            DashboardClient(base_url, api_key, **kwargs)

    def test_backoff_delay_grows_with_jitter(self):
        for attempt, base in ((1, 1.0), (2, 2.0), (3, 4.0)):
            delay = backoff_delay(attempt)
            assert base <= delay <= base * 1.1


class TestRequests:
    async def test_unwraps_data_and_sends_api_key(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "data": [{"id": 1}]})

        async with _client(handler) as client:
            assert await client.todos.list() == [{"id": 1}]

        assert seen[0].url == "http://dashboard.test/api/to_do_list"
        assert seen[0].headers["x-api-key"] == "key-1"

    async def test_no_content_returns_none(self):
        async with _client(lambda r: httpx.Response(204)) as client:
            assert await client.todos.delete(3) is None

    async def test_drops_none_params(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": []})

        async with _client(handler) as client:
            await client.e2e.list_manual_runs(4)

        assert seen[0].url.path == "/api/e2e_manual_runs/app/4"
        assert not seen[0].url.params

    async def test_notification_create_body(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(201, json={"data": {"id": 9}})

        async with _client(handler) as client:
            await client.notifications.create(title="T", message="M")

        assert seen == [{"title": "T", "message": "M", "type": "info"}]


class TestErrors:
    @pytest.mark.parametrize(
        ("status", "message"),
        [
            (401, "Invalid API key - check your credentials"),
            (403, "Access forbidden"),
            (404, "Resource not found"),
        ],
    )
    async def test_status_messages(self, status, message):
        async with _client(lambda r: httpx.Response(status, json={"error": "x"})) as client:
            with pytest.raises(APIError) as exc_info:
                await client.apps.get(1)
        assert exc_info.value.status == status
        assert exc_info.value.message == message

    async def test_client_error_uses_server_message(self, sleep):
        body = {"success": False, "error": {"message": "Title is required", "code": "X"}}
        async with _client(lambda r: httpx.Response(400, json=body)) as client:
            with pytest.raises(APIError, match="Title is required") as exc_info:
                await client.todos.create(title="")
        assert exc_info.value.is_client_error
        sleep.assert_not_awaited()

    async def test_server_errors_are_retried(self, sleep):
        responses = iter(
            [httpx.Response(500), httpx.Response(503), httpx.Response(200, json={"data": 1})]
        )
        async with _client(lambda r: next(responses)) as client:
            assert await client.get("/api/apps") == 1
        assert sleep.await_count == 2

    async def test_gives_up_after_max_retries(self, sleep):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(502)

        async with _client(handler, max_retries=2) as client:
            with pytest.raises(APIError, match="Server error - please try again later"):
                await client.get("/api/apps")
        assert calls == 3

    async def test_rate_limit_honours_retry_after(self, sleep):
        responses = iter(
            [
                httpx.Response(429, headers={"Retry-After": "7"}, json={"error": "slow down"}),
                httpx.Response(200, json={"data": "ok"}),
            ]
        )
        async with _client(lambda r: next(responses)) as client:
            assert await client.get("/api/apps") == "ok"
        sleep.assert_awaited_once_with(7.0)

    async def test_network_error(self, sleep):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler, max_retries=1) as client:
            with pytest.raises(NetworkError):
                await client.health.check()
        assert sleep.await_count == 1


class TestAuthValidate:
    async def test_valid(self):
        body = {"valid": True, "message": "API key is valid"}
        async with _client(lambda r: httpx.Response(200, json=body)) as client:
            assert await client.auth.validate("k") is True

    async def test_invalid_key(self):
        async with _client(lambda r: httpx.Response(401, json={"error": "nope"})) as client:
            assert await client.auth.validate("k") is False
