"""Shared fixtures for the API and job tests.

API tests run the real FastAPI app through ``httpx.ASGITransport`` without
the lifespan; external handles are replaced via ``app.dependency_overrides``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from my_dashboard.api.app import create_app
from my_dashboard.api.deps import (
    get_circleci,
    get_cypress,
    get_fcm,
    get_github,
    get_jira,
    get_pool,
    get_pubsub,
)
from my_dashboard.config import AuthConfig, DashboardConfig

API_KEY = "test-secret-key"


class AsyncContext:
    """Minimal async context manager yielding *value* (for pool.acquire / transaction)."""

    def __init__(self, value) -> None:
        self.value = value

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, *exc_info) -> bool:
        return False


@pytest.fixture
def config() -> DashboardConfig:
    return DashboardConfig(environment="test", auth=AuthConfig(api_key=API_KEY))


@pytest.fixture
def mock_pool() -> AsyncMock:
    pool = AsyncMock()
    pool.fetch.return_value = []
    pool.fetchrow.return_value = None
    pool.fetchval.return_value = None
    return pool


@pytest.fixture
def mock_conn(mock_pool) -> AsyncMock:
    """Connection handed out by ``mock_pool.acquire()``, with a no-op transaction."""
    conn = AsyncMock()
    conn.transaction = MagicMock(return_value=AsyncContext(None))
    mock_pool.acquire = MagicMock(return_value=AsyncContext(conn))
    return conn


@pytest.fixture
def mock_pubsub() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def mock_circleci() -> MagicMock:
    client = MagicMock()
    client.latest_workflow = AsyncMock()
    client.trigger_pipeline = AsyncMock()
    return client


@pytest.fixture
def mock_fcm() -> MagicMock:
    sender = MagicMock()
    sender.enabled = False
    sender.send_to_tokens = AsyncMock(return_value=(0, []))
    return sender


@pytest.fixture
def app(config, mock_pool, mock_pubsub, mock_circleci, mock_fcm):
    application = create_app(config)
    application.dependency_overrides[get_pool] = lambda: mock_pool
    application.dependency_overrides[get_pubsub] = lambda: mock_pubsub
    application.dependency_overrides[get_circleci] = lambda: mock_circleci
    application.dependency_overrides[get_fcm] = lambda: mock_fcm
    application.dependency_overrides[get_cypress] = lambda: MagicMock()
    application.dependency_overrides[get_github] = lambda: MagicMock()
    application.dependency_overrides[get_jira] = lambda: MagicMock()
    return application


@pytest.fixture
async def client(app) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
        headers={"x-api-key": API_KEY},
    ) as http:
        yield http
