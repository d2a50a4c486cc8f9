"""Dashboard configuration loading and validation.

Configuration comes either from a ``dashboard.toml`` file (``load_config``) or
purely from environment variables (``DashboardConfig.from_env``).  String
values in the TOML file may reference environment variables as ``${VAR}``.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from croniter import croniter

from my_dashboard.db import db_params_from_env

# Pattern matching ${VAR_NAME}; supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

KNOWN_JOBS: tuple[str, ...] = (
    "report_e2e",
    "delete_completed_todos",
    "pull_requests_management",
    "manual_tickets_reminder",
)

DEFAULT_SCHEDULES: dict[str, str] = {
    "report_e2e": "0 */2 * * *",
    "delete_completed_todos": "0 3 * * *",
    "pull_requests_management": "0 9-18 * * 1-5",
    "manual_tickets_reminder": "0 10 * * 1-5",
}


class ConfigError(Exception):
    """Raised when dashboard configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [dashboard.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class DatabaseConfig:
    """PostgreSQL connection settings from [dashboard.db] section."""

    name: str = "my_dashboard"
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = "postgres"
    ssl: str | None = None
    min_pool_size: int = 2
    max_pool_size: int = 10

    @property
    def url(self) -> str:
        """SQLAlchemy/libpq URL used by the migration runner."""
        return (
            f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"
        )


@dataclass
class AuthConfig:
    """API key and brute-force settings from [dashboard.auth] section."""

    api_key: str | None = None
    max_attempts: int = 3
    window_seconds: int = 15 * 60
    block_seconds: int = 30 * 60


@dataclass
class CypressConfig:
    api_key: str | None = None
    base_url: str = "https://cloud.cypress.io"
    branch: str = "master"
    lookback_days: int = 14


@dataclass
class CircleCIConfig:
    token: str | None = None
    base_url: str | None = None
    project_path: str | None = None


@dataclass
class GitHubConfig:
    token: str | None = None
    base_url: str = "https://api.github.com"


@dataclass
class JiraConfig:
    base_url: str | None = None
    email: str | None = None
    api_token: str | None = None


@dataclass
class FcmConfig:
    """Firebase Cloud Messaging settings; push is disabled without a project id."""

    project_id: str | None = None
    credentials_file: str | None = None


@dataclass
class JobConfig:
    """A single scheduled job entry from [[dashboard.schedule]]."""

    name: str
    cron: str
    enabled: bool = True


@dataclass
class SchedulerConfig:
    """Scheduler loop configuration from [dashboard.scheduler] section.

    ``api_url`` is the base URL of the dashboard API, used by jobs that go
    through the SDK rather than the database.
    """

    tick_interval_seconds: int = 30
    api_url: str = "http://localhost:3000"


def _default_jobs() -> list[JobConfig]:
    return [JobConfig(name=name, cron=cron) for name, cron in DEFAULT_SCHEDULES.items()]


@dataclass
class DashboardConfig:
    """Parsed and validated dashboard configuration."""

    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    static_dir: str | None = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    cypress: CypressConfig = field(default_factory=CypressConfig)
    circleci: CircleCIConfig = field(default_factory=CircleCIConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    jira: JiraConfig = field(default_factory=JiraConfig)
    fcm: FcmConfig = field(default_factory=FcmConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    schedules: list[JobConfig] = field(default_factory=_default_jobs)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> DashboardConfig:
        """Build configuration from environment variables only.

        Variable names follow the deployment conventions of the dashboard
        (``API_SECURITY_KEY``, ``CYPRESS_API_KEY``, ``CIRCLE_CI_*``, ...).
        """
        env = os.environ
        params = db_params_from_env()
        db = DatabaseConfig(
            name=str(params["database"]),
            host=str(params["host"]),
            port=int(params["port"]),
            user=str(params["user"]),
            password=str(params["password"]),
            ssl=params["ssl"] if isinstance(params["ssl"], str) else None,
        )
        auth = AuthConfig(
            api_key=env.get("API_SECURITY_KEY") or None,
            max_attempts=_env_int("BRUTE_FORCE_MAX_ATTEMPTS", 3),
            window_seconds=_env_int("BRUTE_FORCE_WINDOW_MS", 15 * 60 * 1000) // 1000,
        )
        cors = env.get("CORS_ORIGINS")
        config = cls(
            environment=env.get("DASHBOARD_ENV", "development"),
            host=env.get("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            cors_origins=(
                [o.strip() for o in cors.split(",") if o.strip()]
                if cors
                else ["http://localhost:5173"]
            ),
            static_dir=env.get("DASHBOARD_STATIC_DIR") or None,
            logging=LoggingConfig(
                level=env.get("LOG_LEVEL", "INFO").upper(),
                format=env.get("LOG_FORMAT", "text").lower(),
                log_root=env.get("LOG_ROOT") or None,
            ),
            db=db,
            auth=auth,
            cypress=CypressConfig(api_key=env.get("CYPRESS_API_KEY") or None),
            circleci=CircleCIConfig(
                token=env.get("CIRCLE_CI_TOKEN") or None,
                base_url=env.get("CIRCLE_CI_BASE_URL") or None,
                project_path=env.get("CIRCLE_CI_PROJECT_PATH") or None,
            ),
            github=GitHubConfig(
                token=env.get("GITHUB_TOKEN") or None,
                base_url=env.get("GITHUB_URL") or "https://api.github.com",
            ),
            jira=JiraConfig(
                base_url=env.get("JIRA_BASE_URL") or None,
                email=env.get("JIRA_EMAIL") or None,
                api_token=env.get("JIRA_API_TOKEN") or None,
            ),
            fcm=FcmConfig(
                project_id=env.get("FIREBASE_PROJECT_ID") or None,
                credentials_file=env.get("GOOGLE_APPLICATION_CREDENTIALS") or None,
            ),
            scheduler=SchedulerConfig(
                api_url=env.get("API_URL", "http://localhost:3000"),
            ),
        )
        _validate(config)
        return config


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values are returned
    unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _section(parent: dict, key: str) -> dict:
    value = parent.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"dashboard.{key} must be a table")
    return value


def _optional_str(section: dict, key: str) -> str | None:
    value = section.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_schedules(raw: Any) -> list[JobConfig]:
    """Parse [[dashboard.schedule]] entries, keeping defaults for unlisted jobs."""
    if raw is None:
        return _default_jobs()
    if not isinstance(raw, list):
        raise ConfigError("dashboard.schedule must be an array of tables")

    by_name = {job.name: job for job in _default_jobs()}
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigError(f"dashboard.schedule[{index}] must be a table")
        name = entry.get("name")
        if name not in KNOWN_JOBS:
            raise ConfigError(
                f"dashboard.schedule[{index}].name must be one of {', '.join(KNOWN_JOBS)}; "
                f"got {name!r}"
            )
        cron = str(entry.get("cron", DEFAULT_SCHEDULES[name]))
        by_name[name] = JobConfig(name=name, cron=cron, enabled=bool(entry.get("enabled", True)))
    return list(by_name.values())


def _validate(config: DashboardConfig) -> None:
    if config.logging.format not in ("text", "json"):
        raise ConfigError(
            f"Invalid logging format: {config.logging.format!r}. Must be 'text' or 'json'."
        )
    if config.environment not in ("development", "production", "test"):
        raise ConfigError(f"Invalid environment: {config.environment!r}")
    for job in config.schedules:
        if not croniter.is_valid(job.cron):
            raise ConfigError(f"Invalid cron expression for job {job.name}: {job.cron!r}")
    if config.scheduler.tick_interval_seconds < 1:
        raise ConfigError("dashboard.scheduler.tick_interval_seconds must be >= 1")


def load_config(path: Path) -> DashboardConfig:
    """Load and validate a ``dashboard.toml`` file.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or fails validation.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    data = resolve_env_vars(data)

    root = data.get("dashboard")
    if not isinstance(root, dict):
        raise ConfigError("Missing [dashboard] section in config")

    logging_section = _section(root, "logging")
    db_section = _section(root, "db")
    auth_section = _section(root, "auth")
    cypress_section = _section(root, "cypress")
    circleci_section = _section(root, "circleci")
    github_section = _section(root, "github")
    jira_section = _section(root, "jira")
    fcm_section = _section(root, "fcm")
    scheduler_section = _section(root, "scheduler")

    try:
        config = DashboardConfig(
            environment=str(root.get("environment", "development")),
            host=str(root.get("host", "0.0.0.0")),
            port=int(root.get("port", 3000)),
            cors_origins=list(root.get("cors_origins", ["http://localhost:5173"])),
            static_dir=_optional_str(root, "static_dir"),
            logging=LoggingConfig(
                level=str(logging_section.get("level", "INFO")).upper(),
                format=str(logging_section.get("format", "text")).lower(),
                log_root=_optional_str(logging_section, "log_root"),
            ),
            db=DatabaseConfig(
                name=str(db_section.get("name", "my_dashboard")),
                host=str(db_section.get("host", "localhost")),
                port=int(db_section.get("port", 5432)),
                user=str(db_section.get("user", "postgres")),
                password=str(db_section.get("password", "postgres")),
                ssl=_optional_str(db_section, "ssl"),
                min_pool_size=int(db_section.get("min_pool_size", 2)),
                max_pool_size=int(db_section.get("max_pool_size", 10)),
            ),
            auth=AuthConfig(
                api_key=_optional_str(auth_section, "api_key"),
                max_attempts=int(auth_section.get("max_attempts", 3)),
                window_seconds=int(auth_section.get("window_seconds", 15 * 60)),
                block_seconds=int(auth_section.get("block_seconds", 30 * 60)),
            ),
            cypress=CypressConfig(
                api_key=_optional_str(cypress_section, "api_key"),
                base_url=str(cypress_section.get("base_url", "https://cloud.cypress.io")),
                branch=str(cypress_section.get("branch", "master")),
                lookback_days=int(cypress_section.get("lookback_days", 14)),
            ),
            circleci=CircleCIConfig(
                token=_optional_str(circleci_section, "token"),
                base_url=_optional_str(circleci_section, "base_url"),
                project_path=_optional_str(circleci_section, "project_path"),
            ),
            github=GitHubConfig(
                token=_optional_str(github_section, "token"),
                base_url=str(github_section.get("base_url", "https://api.github.com")),
            ),
            jira=JiraConfig(
                base_url=_optional_str(jira_section, "base_url"),
                email=_optional_str(jira_section, "email"),
                api_token=_optional_str(jira_section, "api_token"),
            ),
            fcm=FcmConfig(
                project_id=_optional_str(fcm_section, "project_id"),
                credentials_file=_optional_str(fcm_section, "credentials_file"),
            ),
            scheduler=SchedulerConfig(
                tick_interval_seconds=int(scheduler_section.get("tick_interval_seconds", 30)),
                api_url=str(scheduler_section.get("api_url", "http://localhost:3000")),
            ),
            schedules=_parse_schedules(root.get("schedule")),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in {path}: {exc}") from exc

    _validate(config)
    return config
