"""REST API for the dashboard."""
