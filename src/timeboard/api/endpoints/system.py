"""System endpoints for health checks and status."""

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends  # type: ignore[import-untyped]

from timeboard import __version__
from timeboard.api.auth import verify_token
from timeboard.api.dependencies import get_config, get_tracker
from timeboard.api.models import HealthResponse, StatusResponse
from timeboard.core.config import ConfigManager
from timeboard.core.tracker import TimeTracker

router = APIRouter()

_server_start_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint.

    Note:
        This endpoint is public (no authentication required).
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
    )


@router.get("/status", response_model=StatusResponse)
def get_status(
    config: ConfigManager = Depends(get_config),
    tracker: TimeTracker = Depends(get_tracker),
    _: dict[str, Any] = Depends(verify_token),
) -> StatusResponse:
    """Get system status: API settings, member count and running timers."""
    members = tracker.known_members()
    running = sum(1 for member in members if tracker.get_running(member) is not None)

    return StatusResponse(
        api_enabled=config.get("api.enabled", False),
        authentication_enabled=config.get("api.authentication.enabled", True),
        cors_enabled=config.get("api.cors.enabled", True),
        members=len(members),
        running_timers=running,
        uptime_seconds=time.time() - _server_start_time,
    )
