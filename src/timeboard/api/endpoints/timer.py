"""Running timer endpoints.

Start and metadata patches accept an ``X-Idempotency-Key`` header; a retried
request with the same key gets the original response back verbatim.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Query  # type: ignore[import-untyped]
from fastapi.responses import JSONResponse  # type: ignore[import-untyped]

from timeboard.api.auth import verify_token
from timeboard.api.dependencies import get_idempotency, get_tracker
from timeboard.api.models import (
    BackdateRequest,
    StartTimerRequest,
    StopTimerRequest,
    UpdateCurrentRequest,
)
from timeboard.api.responses import guarded_response
from timeboard.core.idempotency import SCOPE_CURRENT, SCOPE_START, IdempotencyCache
from timeboard.core.tracker import TimeTracker

router = APIRouter()


@router.post("/start")
def start_timer(
    request: StartTimerRequest,
    x_idempotency_key: Optional[str] = Header(None),
    tracker: TimeTracker = Depends(get_tracker),
    cache: IdempotencyCache = Depends(get_idempotency),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Start a timer, or return the member's running one.

    Returns 201 when a new entry was opened and 200 with ``started: false``
    when the member was already running.

    Example:
        >>> POST /api/v1/timer/start
        {"member": "Rehman", "description": "Review", "project": "Ops"}
    """
    member = tracker.resolve_member(request.member)

    def operation() -> tuple[int, Any]:
        result = tracker.start(
            member,
            description=request.description,
            project=request.project,
            elapsed_seconds=request.elapsed_seconds,
            tz_offset_minutes=request.tz_offset,
        )
        body = {"ok": True, "started": result.started, "current": result.entry.to_dict()}
        return (201 if result.started else 200), body

    return guarded_response(cache, SCOPE_START, member, x_idempotency_key, operation)


@router.post("/stop")
def stop_timer(
    request: StopTimerRequest,
    tracker: TimeTracker = Depends(get_tracker),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Stop the running timer. 409 when nothing is running."""
    entry = tracker.stop(request.member, tz_offset_minutes=request.tz_offset)
    project = tracker.storage.get_project(entry.project_key) if entry.project_key else None
    return JSONResponse({"ok": True, "stopped": entry.to_public(project)})


@router.get("/current")
def get_current(
    member: Optional[str] = Query(None, description="Member name"),
    tracker: TimeTracker = Depends(get_tracker),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Running entry of a member, or ``null`` when idle."""
    canonical = tracker.resolve_member(member)
    running = tracker.get_running(canonical)
    return JSONResponse({"member": canonical, "current": running.to_dict() if running else None})


@router.patch("/current")
def update_current(
    request: UpdateCurrentRequest,
    x_idempotency_key: Optional[str] = Header(None),
    tracker: TimeTracker = Depends(get_tracker),
    cache: IdempotencyCache = Depends(get_idempotency),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Patch description/project of the running entry (no-op when idle)."""
    member = tracker.resolve_member(request.member)

    def operation() -> tuple[int, Any]:
        running = tracker.update_metadata(member, request.description, request.project)
        return 200, {
            "ok": True,
            "member": member,
            "current": running.to_dict() if running else None,
        }

    return guarded_response(cache, SCOPE_CURRENT, member, x_idempotency_key, operation)


@router.post("/backdate")
def backdate_timer(
    request: BackdateRequest,
    tracker: TimeTracker = Depends(get_tracker),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Reset the running entry so it has run ``elapsed_seconds`` (no-op when idle)."""
    running = tracker.backdate(
        request.member,
        request.elapsed_seconds,
        description=request.description,
        project=request.project,
        tz_offset_minutes=request.tz_offset,
    )
    return JSONResponse({"ok": True, "current": running.to_dict() if running else None})
