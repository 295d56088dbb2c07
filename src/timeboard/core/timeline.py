"""Day timeline layout.

Entries are stacked on a single vertical axis. When a block would overlap the
one before it, it is pushed down to start just below that block's bottom; the
layout never produces side-by-side lanes. A block placed at its own start
always fits inside the day; pushed blocks may run past the end of it.
Positions are device independent units with ``hour_height`` units per hour.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from timeboard.core.dates import clamp_tz_offset
from timeboard.core.models import (
    NO_DESCRIPTION_LABEL,
    NO_PROJECT_LABEL,
    Project,
    TimeEntry,
    TimelineBlock,
    project_color_for,
)

MISSING_TIME_LABEL = "—"


@dataclass
class TimelineSettings:
    """Layout constants."""

    hour_height: float = 72
    min_block_height: float = 24
    block_gap: float = 2

    @classmethod
    def from_config(cls, config) -> "TimelineSettings":
        return cls(
            hour_height=config.get("timeline.hour_height", 72),
            min_block_height=config.get("timeline.min_block_height", 24),
            block_gap=config.get("timeline.block_gap", 2),
        )


def format_duration(total_seconds: int) -> str:
    """Format seconds as ``"Xh Ym"``.

    Example:
        >>> format_duration(5400)
        '1h 30m'
    """
    safe = max(0, int(total_seconds))
    return f"{safe // 3600}h {(safe % 3600) // 60}m"


def format_clock(instant: Optional[datetime], tz_offset_minutes: int = 0) -> str:
    """Member-local ``HH:MM`` for an instant, or a dash when missing."""
    if instant is None:
        return MISSING_TIME_LABEL
    local = instant - timedelta(minutes=clamp_tz_offset(tz_offset_minutes))
    return local.strftime("%H:%M")


def build_timeline(
    entries: Iterable[TimeEntry],
    day_start: datetime,
    day_end: datetime,
    now: datetime,
    projects: Optional[dict[str, Project]] = None,
    settings: Optional[TimelineSettings] = None,
    tz_offset_minutes: int = 0,
) -> list[TimelineBlock]:
    """Lay out a day's entries as non-overlapping blocks.

    Args:
        entries: Entries to place (any order)
        day_start: UTC start of the visible day
        day_end: UTC end of the visible day
        now: Reference instant used as the end of running entries
        projects: Project lookup by key
        settings: Layout constants
        tz_offset_minutes: Offset used for the time range labels

    Returns:
        Blocks in start order; entries with no visible span are dropped
    """
    settings = settings or TimelineSettings()
    projects = projects or {}

    units_per_second = settings.hour_height / 3600
    min_visible = timedelta(seconds=settings.min_block_height / units_per_second)
    day_height = (day_end - day_start).total_seconds() * units_per_second
    last_bottom = float("-inf")

    blocks = []
    for entry in sorted(entries, key=lambda e: e.start_at):
        end = entry.effective_end(now)
        visible_start = max(entry.start_at, day_start)
        visible_end = min(end, day_end)
        if visible_end <= visible_start:
            continue

        display_end = min(day_end, max(visible_end, visible_start + min_visible))
        ideal_top = (visible_start - day_start).total_seconds() * units_per_second
        raw_height = (display_end - visible_start).total_seconds() * units_per_second
        ideal_top = min(ideal_top, day_height - settings.min_block_height)
        top = max(0.0, ideal_top, last_bottom + settings.block_gap)
        height = max(settings.min_block_height, raw_height)
        last_bottom = top + height

        project = projects.get(entry.project_key) if entry.project_key else None
        project_name = project.name.strip() if project and project.name.strip() else NO_PROJECT_LABEL
        blocks.append(
            TimelineBlock(
                id=f"{entry.id}-{int(entry.start_at.timestamp() * 1000)}",
                entry_id=entry.id,
                top=top,
                height=height,
                title=(entry.description or "").strip() or NO_DESCRIPTION_LABEL,
                project=project_name,
                project_color=project.color if project else project_color_for(None),
                time_range=(
                    f"{format_clock(entry.start_at, tz_offset_minutes)} → "
                    f"{format_clock(entry.stop_at, tz_offset_minutes)}"
                ),
                duration_label=format_duration(entry.elapsed_seconds(now)),
                is_running=entry.is_running,
            )
        )

    return blocks
