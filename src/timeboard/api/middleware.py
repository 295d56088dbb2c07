"""Middleware for the FastAPI application."""

import logging
import time
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request  # type: ignore[import-untyped]
from fastapi.middleware.cors import CORSMiddleware  # type: ignore[import-untyped]

from timeboard.core.config import ConfigManager

logger = logging.getLogger("timeboard.api.requests")


def setup_cors(app: FastAPI, config: ConfigManager) -> None:
    """Configure CORS middleware from the ``api.cors`` section."""
    if not config.get("api.cors.enabled", True):
        return

    origins = config.get("api.cors.origins", ["http://localhost:3000"])

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Any]]) -> Any:
    """Log method, path, status and duration of every request."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
    )
    return response


def setup_middleware(app: FastAPI, config: ConfigManager) -> None:
    """Set up CORS and request logging."""
    setup_cors(app, config)
    app.middleware("http")(log_requests)
