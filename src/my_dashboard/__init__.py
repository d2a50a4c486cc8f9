"""My Dashboard: engineering status backend (E2E reports, PRs, Jira, to-dos, push)."""

__version__ = "0.1.0"
