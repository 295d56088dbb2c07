"""Pydantic models for API requests and responses.

Member names and timestamps arrive as plain strings; the engine resolves and
parses them so malformed values come back as 400 errors with an ``error``
field rather than schema errors.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field  # type: ignore[import-untyped]

# ============================================================================
# Response Models
# ============================================================================


class ProjectResponse(BaseModel):
    """Response model for project."""

    key: str
    name: str
    color: str
    project_type: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_project(cls, project):  # type: ignore[no-untyped-def]
        return cls(
            key=project.key,
            name=project.name,
            color=project.color,
            project_type=project.project_type,
            created_at=project.created_at,
        )


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status (healthy, degraded, unhealthy)")
    timestamp: datetime = Field(..., description="Current server time")
    version: str = Field(..., description="API version")


class StatusResponse(BaseModel):
    """Response model for system status."""

    api_enabled: bool
    authentication_enabled: bool
    cors_enabled: bool
    members: int = Field(..., description="Number of known members")
    running_timers: int = Field(..., description="Members with a running timer")
    uptime_seconds: float


class TokenResponse(BaseModel):
    """Response model for authentication token."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiry in seconds")


# ============================================================================
# Request Models
# ============================================================================


class StartTimerRequest(BaseModel):
    """Request model for starting a timer."""

    member: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    project: Optional[str] = Field(None, max_length=200)
    elapsed_seconds: int = Field(0, ge=0, description="Backfill: start this many seconds ago")
    tz_offset: Optional[Any] = Field(None, description="Client getTimezoneOffset() minutes")


class StopTimerRequest(BaseModel):
    member: Optional[str] = None
    tz_offset: Optional[Any] = None


class UpdateCurrentRequest(BaseModel):
    """Request model for patching the running entry's metadata."""

    member: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    project: Optional[str] = Field(None, max_length=200)


class BackdateRequest(BaseModel):
    member: Optional[str] = None
    elapsed_seconds: int = Field(..., ge=0)
    description: Optional[str] = Field(None, max_length=500)
    project: Optional[str] = Field(None, max_length=200)
    tz_offset: Optional[Any] = None


class ManualEntryRequest(BaseModel):
    """Request model for recording a closed entry after the fact."""

    member: Optional[str] = None
    start_at: Optional[str] = Field(None, description="ISO-8601 start instant")
    duration_seconds: Optional[int] = None
    duration_minutes: Optional[float] = None
    description: Optional[str] = Field(None, max_length=500)
    project: Optional[str] = Field(None, max_length=200)
    tz_offset: Optional[Any] = None


class UpdateEntryRequest(BaseModel):
    """Request model for replacing an entry's range and metadata."""

    member: Optional[str] = None
    entry_id: int = Field(..., gt=0)
    start_at: Optional[str] = None
    stop_at: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    project: Optional[str] = Field(None, max_length=200)
    tz_offset: Optional[Any] = None


class CreateProjectRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    project_type: Optional[Literal["work", "non_work"]] = None


class UpdateProjectRequest(BaseModel):
    """Request model for changing a project's type or color."""

    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    project_type: Optional[Literal["work", "non_work"]] = None
