"""Consumer for ``e2e:report:generate`` requests."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from my_dashboard.core.logging import request_context
from my_dashboard.services.e2e_reports import DEFAULT_LOOKBACK_DAYS, generate_report

if TYPE_CHECKING:
    import asyncpg

    from my_dashboard.clients.cypress import CypressClient

logger = logging.getLogger(__name__)


class E2EReportProcessor:
    def __init__(
        self,
        pool: asyncpg.Pool,
        cypress: CypressClient,
        *,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> None:
        self._pool = pool
        self._cypress = cypress
        self._lookback_days = lookback_days

    async def handle(self, message: dict[str, Any]) -> None:
        raw_date = message.get("date")
        try:
            day = date.fromisoformat(raw_date) if isinstance(raw_date, str) else None
        except ValueError:
            day = None
        if day is None:
            logger.error("Dropping invalid e2e report request: %r", message)
            return

        request_id = message.get("requestId")
        if not isinstance(request_id, str) or not request_id:
            request_id = str(uuid.uuid4())

        with request_context(request_id):
            logger.info("Processing E2E report request for %s", day)
            await generate_report(
                self._pool,
                self._cypress,
                day,
                force=bool(message.get("force", False)),
                request_id=request_id,
                lookback_days=self._lookback_days,
            )
