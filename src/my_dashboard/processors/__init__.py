"""Pub/sub message processors run inside the API process."""

from __future__ import annotations

from typing import TYPE_CHECKING

from my_dashboard.processors.e2e_report import E2EReportProcessor
from my_dashboard.processors.notifications import NotificationProcessor
from my_dashboard.processors.pull_requests import PullRequestProcessor
from my_dashboard.pubsub import (
    CHANNEL_E2E_REPORT,
    CHANNEL_NOTIFICATION_CREATE,
    CHANNEL_PULL_REQUEST_DELETE,
)

if TYPE_CHECKING:
    from my_dashboard.pubsub import PubSub

__all__ = [
    "E2EReportProcessor",
    "NotificationProcessor",
    "PullRequestProcessor",
    "register_processors",
]


def register_processors(
    pubsub: PubSub,
    *,
    e2e_report: E2EReportProcessor,
    notifications: NotificationProcessor,
    pull_requests: PullRequestProcessor,
) -> None:
    """Subscribe each processor to its channel before ``pubsub.start()``."""
    pubsub.subscribe(CHANNEL_E2E_REPORT, e2e_report.handle)
    pubsub.subscribe(CHANNEL_NOTIFICATION_CREATE, notifications.handle)
    pubsub.subscribe(CHANNEL_PULL_REQUEST_DELETE, pull_requests.handle)
