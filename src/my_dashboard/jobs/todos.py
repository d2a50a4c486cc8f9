"""Housekeeping for the to-do list."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from my_dashboard.sdk import DashboardSDKError

if TYPE_CHECKING:
    from my_dashboard.jobs.base import JobContext

logger = logging.getLogger(__name__)


async def delete_completed_todos(ctx: JobContext) -> dict[str, int]:
    """Delete every completed to-do item, one request per item."""
    todos: list[dict[str, Any]] = await ctx.client.todos.list() or []
    completed = [todo for todo in todos if todo.get("isCompleted")]
    logger.info("Found %d completed to-do(s) out of %d", len(completed), len(todos))

    deleted = failed = 0
    for todo in completed:
        try:
            await ctx.client.todos.delete(todo["id"])
        except DashboardSDKError:
            logger.exception("Failed to delete to-do #%s", todo["id"])
            failed += 1
            continue
        logger.debug("Deleted to-do #%s: %s", todo["id"], todo.get("title"))
        deleted += 1

    return {"deleted": deleted, "failed": failed}
