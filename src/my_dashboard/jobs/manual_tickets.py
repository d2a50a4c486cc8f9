"""Reminder for Jira tickets waiting on manual QA."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from my_dashboard.jobs.base import notify

if TYPE_CHECKING:
    from my_dashboard.jobs.base import JobContext

logger = logging.getLogger(__name__)


def reminder_message(count: int) -> str:
    if count == 1:
        return "There is 1 ticket that needs attention."
    return f"There are {count} tickets that need attention."


async def manual_tickets_reminder(ctx: JobContext) -> dict[str, Any]:
    result = await ctx.client.jira.manual_qa() or {}
    count = len(result.get("issues") or [])
    if count > 0:
        await notify(
            ctx,
            title="Manual Testing Tickets - Reminder",
            message=reminder_message(count),
            type="warning",
            link="/",
        )
    else:
        logger.info("No manual testing tickets need attention")
    return {"tickets": count, "notified": count > 0}
