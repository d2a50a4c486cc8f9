"""HTTP clients for the external services the dashboard talks to."""
