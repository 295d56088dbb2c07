"""Team-wide day and week views."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query  # type: ignore[import-untyped]
from fastapi.responses import JSONResponse  # type: ignore[import-untyped]

from timeboard.api.auth import verify_token
from timeboard.api.dependencies import get_snapshots, get_tracker
from timeboard.api.responses import stale_tolerant_response
from timeboard.core.dates import clamp_tz_offset, parse_date_key
from timeboard.core.snapshots import SnapshotCache
from timeboard.core.tracker import TimeTracker

router = APIRouter()


@router.get("/day")
def get_team_day(
    date: Optional[str] = Query(None, description="Local day (YYYY-MM-DD), defaults to today"),
    tz_offset: Optional[str] = Query(None),
    tracker: TimeTracker = Depends(get_tracker),
    snapshots: SnapshotCache = Depends(get_snapshots),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Every member's entries for the day plus the leaderboard."""
    offset = clamp_tz_offset(tz_offset)
    day = parse_date_key(date) if date else tracker.today(offset)

    return stale_tolerant_response(
        snapshots,
        f"team-day:{day.isoformat()}:{offset}",
        lambda: tracker.get_team_day(day, offset).to_dict(),
        empty={"date": day.isoformat(), "members": [], "ranking": []},
    )


@router.get("/week")
def get_team_week(
    date: Optional[str] = Query(None, description="Last day of the week (YYYY-MM-DD)"),
    tz_offset: Optional[str] = Query(None),
    tracker: TimeTracker = Depends(get_tracker),
    snapshots: SnapshotCache = Depends(get_snapshots),
    _: dict[str, Any] = Depends(verify_token),
) -> JSONResponse:
    """Seven-day totals per member, ordered like the leaderboard."""
    end_date = parse_date_key(date) if date else tracker.today(tz_offset)

    return stale_tolerant_response(
        snapshots,
        f"team-week:{end_date.isoformat()}",
        lambda: tracker.get_team_week(end_date).to_dict(),
        empty={"end_date": end_date.isoformat(), "members": []},
    )
