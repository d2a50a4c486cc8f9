"""PostgreSQL LISTEN/NOTIFY pub/sub for the dashboard.

Channels carry small JSON envelopes:

- ``e2e:report:generate``: ``{"date": "YYYY-MM-DD", "requestId": "<uuid>", "force": bool}``
- ``notification:create``: ``{"title", "message", "type", "link"}``
- ``pull-request:delete``: ``{"id", "pullRequestNumber", "repository", "reason"}``

Publishing goes through the shared pool (``SELECT pg_notify``); listening uses
one dedicated connection opened by ``start()`` and closed by ``close()``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from my_dashboard.core.metrics import pubsub_messages_total

if TYPE_CHECKING:
    import asyncpg

    from my_dashboard.db import Database

logger = logging.getLogger(__name__)

CHANNEL_E2E_REPORT = "e2e:report:generate"
CHANNEL_NOTIFICATION_CREATE = "notification:create"
CHANNEL_PULL_REQUEST_DELETE = "pull-request:delete"

MessageHandler = Callable[[dict[str, Any]], Awaitable[None]]


class PubSub:
    """Publish/subscribe handle backed by a ``Database``.

    Usage::

        pubsub = PubSub(database)
        pubsub.subscribe(CHANNEL_E2E_REPORT, processor.handle)
        await pubsub.start()
        await pubsub.publish(CHANNEL_E2E_REPORT, {"date": "2025-10-02", "requestId": "abc"})
        ...
        await pubsub.close()
    """

    def __init__(self, database: Database) -> None:
        self._database = database
        self._handlers: dict[str, list[MessageHandler]] = defaultdict(list)
        self._listeners: dict[str, Callable[..., None]] = {}
        self._conn: asyncpg.Connection | None = None
        self._inflight: set[asyncio.Task] = set()

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        """Send *payload* as JSON to every listener of *channel*."""
        pool = self._database.require_pool()
        await pool.execute("SELECT pg_notify($1, $2)", channel, json.dumps(payload, default=str))
        pubsub_messages_total.labels(channel=channel, direction="out").inc()
        logger.debug("Published message on %s", channel)

    def subscribe(self, channel: str, handler: MessageHandler) -> None:
        """Register *handler* for *channel*.

        Handlers registered before ``start()`` are attached when the listener
        connection opens; later registrations take effect on the next start.
        """
        self._handlers[channel].append(handler)

    async def start(self) -> None:
        """Open the listener connection and LISTEN on all subscribed channels."""
        if self._conn is not None:
            logger.warning("PubSub listener already started")
            return
        if not self._handlers:
            logger.info("PubSub has no subscriptions; listener not started")
            return

        self._conn = await self._database.open_connection()
        for channel in self._handlers:
            listener = self._make_listener(channel)
            await self._conn.add_listener(channel, listener)
            self._listeners[channel] = listener
            logger.info("Subscribed to channel %s", channel)

    def _make_listener(self, channel: str) -> Callable[..., None]:
        def _on_notify(
            connection: Any,  # noqa: ARG001
            pid: int,  # noqa: ARG001
            notified_channel: str,
            payload: str,
        ) -> None:
            task = asyncio.get_running_loop().create_task(self._dispatch(notified_channel, payload))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

        return _on_notify

    async def _dispatch(self, channel: str, raw: str) -> None:
        pubsub_messages_total.labels(channel=channel, direction="in").inc()
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Dropping malformed message on %s: %r", channel, raw)
            return
        if not isinstance(message, dict):
            logger.error("Dropping non-object message on %s: %r", channel, raw)
            return

        for handler in self._handlers.get(channel, []):
            try:
                await handler(message)
            except Exception:
                logger.exception("Handler failed for message on %s", channel)

    async def close(self) -> None:
        """Stop listening, let in-flight handlers finish, and close the connection."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

        if self._conn is None:
            return
        try:
            for channel, listener in self._listeners.items():
                await self._conn.remove_listener(channel, listener)
        finally:
            self._listeners.clear()
            await self._conn.close()
            self._conn = None
            logger.info("PubSub listener connection closed")
