"""Prometheus metrics for the dashboard processes.

Metrics exported:
- dashboard_report_generations_total: E2E report generation outcomes
- dashboard_report_generation_seconds: Duration of report generation
- dashboard_pubsub_messages_total: Published / received pub/sub messages
- dashboard_job_runs_total: Scheduled job runs by outcome
- dashboard_push_messages_total: FCM push sends by outcome
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

report_generations_total = Counter(
    "dashboard_report_generations_total",
    "Total number of E2E report generation attempts",
    labelnames=["status"],
)

report_generation_seconds = Histogram(
    "dashboard_report_generation_seconds",
    "Duration of E2E report generation in seconds",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

pubsub_messages_total = Counter(
    "dashboard_pubsub_messages_total",
    "Total number of pub/sub messages by channel and direction",
    labelnames=["channel", "direction"],
)

job_runs_total = Counter(
    "dashboard_job_runs_total",
    "Total number of scheduled job runs",
    labelnames=["job", "status"],
)

push_messages_total = Counter(
    "dashboard_push_messages_total",
    "Total number of push notification deliveries",
    labelnames=["status"],
)
