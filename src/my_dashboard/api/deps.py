"""Dependency injection for the dashboard API.

The lifespan handler builds one ``Resources`` container and stores it on
``app.state.resources``.  Routers never import it directly; they declare
``Depends(get_pool)``, ``Depends(get_cypress)`` and friends, and tests swap
those functions out with ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from fastapi import Request

from my_dashboard.clients.circleci import CircleCIClient
from my_dashboard.clients.cypress import CypressClient
from my_dashboard.clients.fcm import FcmSender
from my_dashboard.clients.github import GitHubClient
from my_dashboard.clients.jira import JiraClient
from my_dashboard.db import Database
from my_dashboard.errors import ServiceUnavailableError
from my_dashboard.processors import (
    E2EReportProcessor,
    NotificationProcessor,
    PullRequestProcessor,
    register_processors,
)
from my_dashboard.pubsub import PubSub

if TYPE_CHECKING:
    import asyncpg

    from my_dashboard.config import DashboardConfig
    from my_dashboard.services.auth import BruteForceGuard

logger = logging.getLogger(__name__)


@dataclass
class Resources:
    """Process-wide handles owned by the API lifespan."""

    database: Database
    pubsub: PubSub
    cypress: CypressClient
    circleci: CircleCIClient
    github: GitHubClient
    jira: JiraClient
    fcm: FcmSender

    @classmethod
    def from_config(cls, config: DashboardConfig) -> Resources:
        database = Database.from_config(config.db)
        return cls(
            database=database,
            pubsub=PubSub(database),
            cypress=CypressClient(
                config.cypress.api_key,
                config.cypress.base_url,
                config.cypress.branch,
            ),
            circleci=CircleCIClient(
                config.circleci.token,
                config.circleci.base_url,
                config.circleci.project_path,
            ),
            github=GitHubClient(config.github.token, config.github.base_url),
            jira=JiraClient(config.jira.base_url, config.jira.email, config.jira.api_token),
            fcm=FcmSender(config.fcm.project_id, config.fcm.credentials_file),
        )

    async def start(self, config: DashboardConfig) -> None:
        """Open the pool, wire the processors and start listening."""
        await self.database.connect()
        pool = self.database.require_pool()
        register_processors(
            self.pubsub,
            e2e_report=E2EReportProcessor(
                pool, self.cypress, lookback_days=config.cypress.lookback_days
            ),
            notifications=NotificationProcessor(pool, self.fcm),
            pull_requests=PullRequestProcessor(pool),
        )
        await self.pubsub.start()

    async def close(self) -> None:
        """Release everything in reverse order of acquisition."""
        await self.pubsub.close()
        for client in (self.fcm, self.jira, self.github, self.circleci, self.cypress):
            await client.aclose()
        await self.database.close()


def _resources(request: Request) -> Resources:
    resources: Resources | None = getattr(request.app.state, "resources", None)
    if resources is None:
        raise ServiceUnavailableError("Dashboard resources are not initialized")
    return resources


def get_config(request: Request) -> DashboardConfig:
    return request.app.state.config


def get_guard(request: Request) -> BruteForceGuard:
    return request.app.state.guard


def get_pool(request: Request) -> asyncpg.Pool:
    pool = _resources(request).database.pool
    if pool is None:
        raise ServiceUnavailableError("Database connection pool is not available")
    return pool


def get_pubsub(request: Request) -> PubSub:
    return _resources(request).pubsub


def get_cypress(request: Request) -> CypressClient:
    return _resources(request).cypress


def get_circleci(request: Request) -> CircleCIClient:
    return _resources(request).circleci


def get_github(request: Request) -> GitHubClient:
    return _resources(request).github


def get_jira(request: Request) -> JiraClient:
    return _resources(request).jira


def get_fcm(request: Request) -> FcmSender:
    return _resources(request).fcm
