"""Periodic request for today's E2E report."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from my_dashboard.services.e2e_reports import publish_report_request

if TYPE_CHECKING:
    from my_dashboard.jobs.base import JobContext

logger = logging.getLogger(__name__)


async def report_e2e(ctx: JobContext) -> dict[str, Any]:
    """Publish a generation request for the current UTC date."""
    today = datetime.now(UTC).date()
    try:
        request_id = await publish_report_request(ctx.pubsub, today)
    except Exception:
        logger.exception("Failed to publish E2E report request for %s", today)
        return {"published": False}
    return {"published": True, "date": today.isoformat(), "requestId": request_id}
