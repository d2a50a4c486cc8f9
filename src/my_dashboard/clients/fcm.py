"""Firebase Cloud Messaging sender over the HTTP v1 API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from my_dashboard.clients.http import build_client
from my_dashboard.core.metrics import push_messages_total

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_BASE_URL = "https://fcm.googleapis.com"

# Upstream statuses that mean the registration token itself is bad.
_STALE_TOKEN_STATUSES = frozenset({400, 404})


class FcmSender:
    """Send push notifications to device registration tokens.

    The sender is disabled when no ``project_id`` is configured; every send
    is then a logged no-op reporting zero successes.
    """

    def __init__(
        self,
        project_id: str | None,
        credentials_file: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._project_id = project_id
        self._credentials_file = credentials_file
        self._credentials: Any = None
        self._client = build_client(base_url=FCM_BASE_URL, transport=transport)

    @property
    def enabled(self) -> bool:
        return bool(self._project_id)

    def _load_credentials(self) -> Any:
        import google.auth
        from google.oauth2 import service_account

        if self._credentials_file:
            return service_account.Credentials.from_service_account_file(
                self._credentials_file, scopes=[FCM_SCOPE]
            )
        credentials, _project = google.auth.default(scopes=[FCM_SCOPE])
        return credentials

    def _refresh_token(self) -> str:
        from google.auth.transport.requests import Request

        if self._credentials is None:
            self._credentials = self._load_credentials()
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token

    async def access_token(self) -> str:
        """Return a valid OAuth access token, refreshing off the event loop."""
        return await asyncio.to_thread(self._refresh_token)

    @staticmethod
    def build_message(
        token: str,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        # FCM data values must be strings.
        str_data = {k: str(v) for k, v in (data or {}).items() if v is not None}
        return {
            "message": {
                "token": token,
                "notification": {"title": title, "body": body},
                "data": str_data,
            }
        }

    async def _send_one(self, access_token: str, message: dict[str, Any]) -> int | None:
        """Send one message; return ``None`` on success or the failing status code."""
        try:
            resp = await self._client.post(
                f"/v1/projects/{self._project_id}/messages:send",
                json=message,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            logger.warning("FCM send failed: %s", exc)
            return 0
        if resp.is_error:
            logger.warning("FCM send returned %s: %s", resp.status_code, resp.text[:200])
            return resp.status_code
        return None

    async def send_to_tokens(
        self,
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> tuple[int, list[str]]:
        """Send one notification to every token.

        Returns ``(success_count, stale_tokens)`` where *stale_tokens* are the
        tokens FCM rejected as invalid or unregistered.
        """
        if not self.enabled:
            logger.info("FCM is not configured; skipping push to %d device(s)", len(tokens))
            return 0, []
        if not tokens:
            return 0, []

        access_token = await self.access_token()
        results = await asyncio.gather(
            *(
                self._send_one(access_token, self.build_message(token, title, body, data))
                for token in tokens
            )
        )

        success = 0
        stale: list[str] = []
        for token, status in zip(tokens, results, strict=True):
            if status is None:
                success += 1
                push_messages_total.labels(status="success").inc()
                continue
            push_messages_total.labels(status="failure").inc()
            if status in _STALE_TOKEN_STATUSES:
                stale.append(token)

        logger.info(
            "Push notification sent: %d success, %d failure",
            success,
            len(tokens) - success,
        )
        return success, stale

    async def aclose(self) -> None:
        await self._client.aclose()
