"""Consumer for ``notification:create`` messages, with push delivery."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from my_dashboard.errors import AppError
from my_dashboard.services import device_tokens, notifications

if TYPE_CHECKING:
    import asyncpg

    from my_dashboard.clients.fcm import FcmSender

logger = logging.getLogger(__name__)


async def push_notification(
    pool: asyncpg.Pool, fcm: FcmSender, notification: dict[str, Any]
) -> int:
    """Push *notification* to every registered device; prune stale tokens.

    Returns the number of devices reached.  Push failures are logged, never
    raised, so the stored notification is unaffected.
    """
    if not fcm.enabled:
        return 0
    try:
        tokens = await device_tokens.list_tokens(pool)
        if not tokens:
            return 0
        success, stale = await fcm.send_to_tokens(
            tokens,
            notification["title"],
            notification["message"],
            {
                "notificationId": notification.get("id"),
                "type": notification.get("type"),
                "link": notification.get("link") or "",
            },
        )
        if stale:
            await device_tokens.remove_tokens(pool, stale)
        return success
    except Exception:
        logger.exception("Push delivery failed for notification %s", notification.get("id"))
        return 0


class NotificationProcessor:
    def __init__(self, pool: asyncpg.Pool, fcm: FcmSender) -> None:
        self._pool = pool
        self._fcm = fcm

    async def handle(self, message: dict[str, Any]) -> None:
        try:
            notification = await notifications.create_notification(
                self._pool,
                title=message.get("title") or "",
                message=message.get("message") or "",
                type=message.get("type") or "info",
                link=message.get("link"),
            )
        except AppError as exc:
            logger.error("Dropping invalid notification message %r: %s", message, exc.message)
            return
        await push_notification(self._pool, self._fcm, notification)
