"""Shared plumbing for scheduled jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from my_dashboard.pubsub import CHANNEL_NOTIFICATION_CREATE

if TYPE_CHECKING:
    from my_dashboard.pubsub import PubSub
    from my_dashboard.sdk import DashboardClient

logger = logging.getLogger(__name__)


@dataclass
class JobContext:
    """Handles a job may use: pub/sub for fire-and-forget work, the SDK for reads."""

    pubsub: PubSub
    client: DashboardClient


JobFn = Callable[[JobContext], Awaitable[dict[str, Any]]]


async def notify(
    ctx: JobContext,
    *,
    title: str,
    message: str,
    type: str = "info",
    link: str | None = None,
) -> None:
    """Ask the API process to create (and push) a notification."""
    payload: dict[str, Any] = {"title": title, "message": message, "type": type}
    if link is not None:
        payload["link"] = link
    await ctx.pubsub.publish(CHANNEL_NOTIFICATION_CREATE, payload)
    logger.info("Published notification request: %s", title)


async def run_with_retries(
    fn: JobFn,
    ctx: JobContext,
    *,
    attempts: int = 5,
    delay: float = 60,
) -> dict[str, Any]:
    """Run *fn* until it succeeds, at most *attempts* times, sleeping *delay* between tries.

    The last exception is re-raised once the attempts are exhausted.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    name = getattr(fn, "__name__", repr(fn))
    attempt = 1
    while True:
        try:
            return await fn(ctx)
        except Exception:
            if attempt >= attempts:
                logger.error("Job %s failed after %d attempt(s)", name, attempts)
                raise
            logger.warning(
                "Job %s failed (attempt %d/%d); retrying in %ss",
                name,
                attempt,
                attempts,
                delay,
                exc_info=True,
            )
            await asyncio.sleep(delay)
            attempt += 1
