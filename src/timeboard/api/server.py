"""FastAPI application server."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI, Request  # type: ignore[import-untyped]
from fastapi.responses import JSONResponse  # type: ignore[import-untyped]

from timeboard import __version__
from timeboard.api.middleware import setup_middleware
from timeboard.core.cancellation import LatestWriteRegistry
from timeboard.core.config import ConfigManager
from timeboard.core.errors import TimeboardError
from timeboard.core.idempotency import IdempotencyCache
from timeboard.core.models import utc_now
from timeboard.core.snapshots import SnapshotCache
from timeboard.core.storage import StorageManager

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[ConfigManager] = None,
    storage: Optional[StorageManager] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Optional configuration manager (creates default if None)
        storage: Store to serve from (defaults to one under ``general.data_dir``)
        clock: Source of the current UTC instant

    Returns:
        Configured FastAPI application instance
    """
    if config is None:
        config = ConfigManager()
    if storage is None:
        storage = StorageManager(config.data_dir)
    clock = clock or utc_now

    try:
        storage.purge_expired_snapshots(clock())
    except TimeboardError as e:
        logger.warning(f"Could not purge expired cached responses: {e.message}")

    app = FastAPI(
        title="Timeboard API",
        description="REST API for the Timeboard team time-tracking dashboard",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.config = config
    app.state.storage = storage
    app.state.clock = clock
    app.state.idempotency = IdempotencyCache(
        storage,
        clock,
        success_ttl=config.get("idempotency.success_ttl", 180),
        failure_ttl=config.get("idempotency.failure_ttl", 120),
    )
    app.state.snapshots = SnapshotCache(config.get("snapshots.ttl_seconds", 600), clock)
    app.state.write_registry = LatestWriteRegistry()

    setup_middleware(app, config)

    @app.exception_handler(TimeboardError)
    async def timeboard_error_handler(request: Request, exc: TimeboardError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(exc.to_body(), status_code=exc.status_code)

    from timeboard.api.endpoints import entries, projects, system, team, timer

    app.include_router(system.router, prefix="/api/v1", tags=["system"])
    app.include_router(timer.router, prefix="/api/v1/timer", tags=["timer"])
    app.include_router(entries.router, prefix="/api/v1/entries", tags=["entries"])
    app.include_router(team.router, prefix="/api/v1/team", tags=["team"])
    app.include_router(projects.router, prefix="/api/v1/projects", tags=["projects"])

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Root endpoint - redirect to docs."""
        return JSONResponse(
            {
                "message": "Timeboard API",
                "version": __version__,
                "docs": "/docs",
                "health": "/api/v1/health",
            }
        )

    return app


def run_server(
    host: str = "localhost",
    port: int = 8000,
    reload: bool = False,
    workers: int = 1,
    ssl_certfile: Optional[Path] = None,
    ssl_keyfile: Optional[Path] = None,
    config: Optional[ConfigManager] = None,
) -> None:
    """Run the API server using Uvicorn.

    Note:
        This function blocks until the server is stopped.
        SSL requires both cert_file and key_file to be specified.
    """
    import uvicorn  # type: ignore[import-untyped]

    if config is None:
        config = ConfigManager()

    uvicorn_config = {
        "app": "timeboard.api.server:create_app",
        "factory": True,
        "host": host,
        "port": port,
        "reload": reload,
        "workers": workers if not reload else 1,
        "log_level": config.get("api.advanced.log_level", "info"),
        "access_log": config.get("api.advanced.access_log", True),
    }

    if ssl_certfile and ssl_keyfile:
        uvicorn_config.update(
            {
                "ssl_certfile": str(ssl_certfile),
                "ssl_keyfile": str(ssl_keyfile),
            }
        )

    uvicorn.run(**uvicorn_config)
