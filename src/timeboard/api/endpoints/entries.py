"""Entry endpoints: manual records, edits, deletes and day views."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Query, status  # type: ignore[import-untyped]
from fastapi.responses import JSONResponse  # type: ignore[import-untyped]

from timeboard.api.auth import verify_token
from timeboard.api.dependencies import (
    get_idempotency,
    get_snapshots,
    get_tracker,
    get_write_registry,
)
from timeboard.api.models import ManualEntryRequest, UpdateEntryRequest
from timeboard.api.responses import guarded_response, stale_tolerant_response
from timeboard.core.cancellation import LatestWriteRegistry
from timeboard.core.dates import clamp_tz_offset, parse_date_key, parse_instant
from timeboard.core.idempotency import SCOPE_UPDATE, IdempotencyCache
from timeboard.core.snapshots import SnapshotCache
from timeboard.core.tracker import TimeTracker

router = APIRouter()


def _public(tracker: TimeTracker, entry) -> dict[str, Any]:  # type: ignore[no-untyped-def]
    project = tracker.storage.get_project(entry.project_key) if entry.project_key else None
    return entry.to_public(project)


@router.post("/manual", status_code=status.HTTP_201_CREATED)
def create_manual_entry(
    request: ManualEntryRequest,
    tracker: TimeTracker = Depends(get_tracker),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Record a closed entry from a start instant and a duration.

    Example:
        >>> POST /api/v1/entries/manual
        {"member": "Rehman", "start_at": "2024-01-01T09:00:00Z", "duration_minutes": 45}
    """
    member = tracker.resolve_member(request.member)
    start_at = parse_instant(request.start_at or "", "start_at")
    entry = tracker.create_manual_entry(
        member,
        start_at,
        duration_seconds=request.duration_seconds,
        duration_minutes=request.duration_minutes,
        description=request.description,
        project=request.project,
        tz_offset_minutes=request.tz_offset,
    )
    return JSONResponse(
        {"ok": True, "entry": _public(tracker, entry)}, status_code=status.HTTP_201_CREATED
    )


@router.post("/update")
def update_entry(
    request: UpdateEntryRequest,
    x_idempotency_key: Optional[str] = Header(None),
    tracker: TimeTracker = Depends(get_tracker),
    cache: IdempotencyCache = Depends(get_idempotency),
    registry: LatestWriteRegistry = Depends(get_write_registry),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Replace an entry's range and metadata.

    A newer update to the same entry cancels an older one still in flight.
    Replays of a recorded key never register as a new write.
    """
    member = tracker.resolve_member(request.member)
    start_at = parse_instant(request.start_at or "", "start_at")
    stop_at = parse_instant(request.stop_at or "", "stop_at")

    field_key = ("entry", member.lower(), request.entry_id)

    def operation() -> tuple[int, Any]:
        token = registry.begin(field_key)
        try:
            entry = tracker.update_entry(
                member,
                request.entry_id,
                start_at,
                stop_at,
                description=request.description,
                project=request.project,
                tz_offset_minutes=request.tz_offset,
                token=token,
            )
        finally:
            registry.finish(field_key, token)
        return 200, {"ok": True, "entry": _public(tracker, entry)}

    return guarded_response(cache, SCOPE_UPDATE, member, x_idempotency_key, operation)


@router.delete("/{entry_id}")
def delete_entry(
    entry_id: int,
    member: Optional[str] = Query(None),
    tracker: TimeTracker = Depends(get_tracker),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Delete one of the member's entries."""
    result = tracker.delete_entry(member, entry_id)  # type: ignore[arg-type]
    return JSONResponse(
        {"ok": True, "deleted": result.entry_id, "was_running": result.was_running}
    )


@router.get("/day")
def get_day_entries(
    member: Optional[str] = Query(None),
    date: Optional[str] = Query(None, description="Local day (YYYY-MM-DD), defaults to today"),
    tz_offset: Optional[str] = Query(None, description="Client getTimezoneOffset() minutes"),
    tracker: TimeTracker = Depends(get_tracker),
    snapshots: SnapshotCache = Depends(get_snapshots),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """A member's entries for a local day with timeline layout and totals."""
    canonical = tracker.resolve_member(member)
    offset = clamp_tz_offset(tz_offset)
    day = parse_date_key(date) if date else tracker.today(offset)

    return stale_tolerant_response(
        snapshots,
        f"day:{canonical.lower()}:{day.isoformat()}:{offset}",
        lambda: tracker.get_day_entries(canonical, day, offset).to_dict(),
        empty={"member": canonical, "date": day.isoformat(), "entries": []},
    )


@router.get("/week-total")
def get_week_total(
    member: Optional[str] = Query(None),
    date: Optional[str] = Query(None, description="Last day of the week (YYYY-MM-DD)"),
    tz_offset: Optional[str] = Query(None),
    tracker: TimeTracker = Depends(get_tracker),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Closed work seconds over the seven days ending on ``date``."""
    canonical = tracker.resolve_member(member)
    end_date = parse_date_key(date) if date else tracker.today(tz_offset)
    return JSONResponse(tracker.get_week_total(canonical, end_date))
