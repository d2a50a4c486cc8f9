"""Tests for the FCM push sender."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from my_dashboard.clients.fcm import FcmSender

pytestmark = pytest.mark.unit


def _sender(statuses: dict[str, int], seen: list[dict]) -> FcmSender:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append({"path": request.url.path, "auth": request.headers["authorization"], **body})
        token = body["message"]["token"]
        return httpx.Response(statuses.get(token, 200), json={})

    sender = FcmSender("proj-1", transport=httpx.MockTransport(handler))
    sender.access_token = AsyncMock(return_value="oauth-token")
    return sender


def test_build_message_stringifies_data():
    message = FcmSender.build_message("tok", "Title", "Body", {"id": 5, "link": None})
    assert message == {
        "message": {
            "token": "tok",
            "notification": {"title": "Title", "body": "Body"},
            "data": {"id": "5"},
        }
    }


async def test_disabled_sender_skips_push():
    sender = FcmSender(None)
    assert sender.enabled is False
    assert await sender.send_to_tokens(["a"], "t", "b") == (0, [])
    await sender.aclose()


async def test_sends_to_every_token():
    seen: list[dict] = []
    sender = _sender({}, seen)

    assert await sender.send_to_tokens(["a", "b"], "Title", "Body") == (2, [])

    assert {s["message"]["token"] for s in seen} == {"a", "b"}
    assert seen[0]["path"] == "/v1/projects/proj-1/messages:send"
    assert seen[0]["auth"] == "Bearer oauth-token"
    await sender.aclose()


async def test_rejected_tokens_are_reported_stale():
    seen: list[dict] = []
    sender = _sender({"gone": 404, "bad": 400, "flaky": 503}, seen)

    success, stale = await sender.send_to_tokens(["ok", "gone", "bad", "flaky"], "t", "b")

    assert success == 1
    assert stale == ["gone", "bad"]
    await sender.aclose()


async def test_no_tokens_does_not_fetch_credentials():
    sender = FcmSender("proj-1")
    sender.access_token = AsyncMock()
    assert await sender.send_to_tokens([], "t", "b") == (0, [])
    sender.access_token.assert_not_awaited()
    await sender.aclose()
