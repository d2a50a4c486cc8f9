"""Dashboard API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (configurable origins)
- API key, request-context and catch-all error middleware
- Lifespan handler that builds and tears down the ``Resources`` container
- Health endpoint at GET /health and Prometheus metrics at GET /metrics
- Optional static file serving for the built frontend
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from starlette.responses import Response
from starlette.staticfiles import StaticFiles

from my_dashboard import __version__
from my_dashboard.api.deps import Resources
from my_dashboard.api.middleware import register_error_handlers
from my_dashboard.api.models.general import HealthStatus
from my_dashboard.api.routers.apps import router as apps_router
from my_dashboard.api.routers.auth import router as auth_router
from my_dashboard.api.routers.e2e_reports import router as e2e_reports_router
from my_dashboard.api.routers.fcm import router as fcm_router
from my_dashboard.api.routers.jira import router as jira_router
from my_dashboard.api.routers.manual_runs import router as manual_runs_router
from my_dashboard.api.routers.notifications import router as notifications_router
from my_dashboard.api.routers.pull_requests import router as pull_requests_router
from my_dashboard.api.routers.todos import router as todos_router
from my_dashboard.config import DashboardConfig
from my_dashboard.services.auth import BruteForceGuard

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle for the pool, pub/sub listener and clients."""
    config: DashboardConfig = app.state.config
    resources = Resources.from_config(config)
    try:
        await resources.start(config)
    except Exception:
        logger.warning(
            "Failed to connect to the database; DB endpoints will be unavailable",
            exc_info=True,
        )
    app.state.resources = resources
    logger.info("Dashboard API started (%s)", config.environment)
    try:
        yield
    finally:
        app.state.resources = None
        await resources.close()
        logger.info("Dashboard API stopped")


async def _database_connected(app: FastAPI) -> bool:
    resources: Resources | None = getattr(app.state, "resources", None)
    if resources is None or resources.database.pool is None:
        return False
    try:
        await resources.database.pool.fetchval("SELECT 1")
    except Exception:
        logger.warning("Health check database probe failed", exc_info=True)
        return False
    return True


def create_app(config: DashboardConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Dashboard configuration.  Defaults to ``DashboardConfig.from_env()``.
        The API key middleware, the brute-force guard and the lifespan all
        read from it via ``app.state``.
    """
    if config is None:
        config = DashboardConfig.from_env()

    app = FastAPI(
        title="My Dashboard API",
        version=__version__,
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False
    app.state.config = config
    app.state.resources = None
    app.state.guard = BruteForceGuard(
        max_attempts=config.auth.max_attempts,
        window_seconds=config.auth.window_seconds,
        block_seconds=config.auth.block_seconds,
    )
    app.state.started_at = time.monotonic()

    register_error_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(e2e_reports_router)
    app.include_router(manual_runs_router)
    app.include_router(apps_router)
    app.include_router(todos_router)
    app.include_router(notifications_router)
    app.include_router(pull_requests_router)
    app.include_router(jira_router)
    app.include_router(fcm_router)

    @app.get("/health", response_model=HealthStatus)
    async def health(request: Request) -> HealthStatus:
        """Liveness probe; reports ``degraded`` instead of failing when the DB is down."""
        db_connected = await _database_connected(request.app)
        return HealthStatus(
            success=True,
            status="ok" if db_connected else "degraded",
            db_connected=db_connected,
            environment=config.environment,
            timestamp=datetime.now(UTC).isoformat(),
            uptime=round(time.monotonic() - request.app.state.started_at, 3),
        )

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

    # --- Static file serving (production) ---
    # Mount AFTER all API routes so /api/* always takes precedence.
    if config.static_dir is not None:
        dist_path = Path(config.static_dir)
        if dist_path.is_dir():
            app.mount(
                "/",
                StaticFiles(directory=str(dist_path), html=True),
                name="frontend",
            )
            logger.info("Mounted frontend static files from %s", dist_path)
        else:
            logger.warning("static_dir %s does not exist; skipping static mount", dist_path)

    return app
