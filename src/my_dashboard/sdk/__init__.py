"""Python client for the dashboard REST API."""

from my_dashboard.sdk.client import DashboardClient
from my_dashboard.sdk.errors import APIError, ConfigurationError, DashboardSDKError, NetworkError

__all__ = [
    "APIError",
    "ConfigurationError",
    "DashboardClient",
    "DashboardSDKError",
    "NetworkError",
]
