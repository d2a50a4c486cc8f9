"""Consumer for ``pull-request:delete`` messages."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from my_dashboard.errors import NotFoundError
from my_dashboard.services.pull_requests import delete_pull_request

if TYPE_CHECKING:
    import asyncpg

logger = logging.getLogger(__name__)


class PullRequestProcessor:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def handle(self, message: dict[str, Any]) -> None:
        pr_id = message.get("id")
        if not isinstance(pr_id, int):
            logger.error("Dropping pull request delete without an integer id: %r", message)
            return
        try:
            await delete_pull_request(self._pool, pr_id)
        except NotFoundError:
            logger.info("Pull request %s already removed", pr_id)
            return
        logger.info(
            "Removed pull request %s#%s: %s",
            message.get("repository"),
            message.get("pullRequestNumber"),
            message.get("reason") or "no reason given",
        )
