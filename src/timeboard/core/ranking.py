"""Team leaderboard and weekly rollups."""

import math
from datetime import date, datetime
from typing import Iterable, Mapping, Optional

from timeboard.core.models import DaySummary, Project, RankingRow, TimeEntry, WeekRow

DEFAULT_ENTRY_CAP_SECONDS = 4 * 60 * 60
DEFAULT_EXCLUDED_NAMES = ("non-work-task",)


def _normalized_names(names: Iterable[str]) -> set[str]:
    return {name.strip().lower() for name in names if name and name.strip()}


def counts_as_work(
    entry: TimeEntry,
    projects: Mapping[str, Project],
    excluded_names: Iterable[str] = DEFAULT_EXCLUDED_NAMES,
) -> bool:
    """Whether an entry's project is eligible for ranking.

    Entries without a project count. Non-work projects and projects whose
    name is reserved (trimmed, case-insensitive) do not.
    """
    if not entry.project_key:
        return True
    project = projects.get(entry.project_key)
    if project is None:
        return True
    if not project.is_work:
        return False
    return project.name.strip().lower() not in _normalized_names(excluded_names)


def _closed_range(entry: TimeEntry) -> Optional[tuple[datetime, datetime, int]]:
    if entry.stop_at is None or entry.stop_at <= entry.start_at:
        return None
    from_range = math.floor((entry.stop_at - entry.start_at).total_seconds())
    seconds = entry.duration_seconds if entry.duration_seconds is not None else from_range
    return entry.start_at, entry.stop_at, max(0, seconds)


def rank_member(
    member: str,
    entries: Iterable[TimeEntry],
    projects: Mapping[str, Project],
    excluded_names: Iterable[str] = DEFAULT_EXCLUDED_NAMES,
    cap_seconds: int = DEFAULT_ENTRY_CAP_SECONDS,
) -> RankingRow:
    """Compute one member's ranking row from their day's entries.

    Only closed work entries count; each contributes at most ``cap_seconds``.
    The longest break is the largest gap between the end of one counted entry
    and the start of the next, floored at zero for overlaps.
    """
    excluded = _normalized_names(excluded_names)
    ranges = sorted(
        (
            closed
            for entry in entries
            if counts_as_work(entry, projects, excluded)
            for closed in [_closed_range(entry)]
            if closed is not None
        ),
        key=lambda item: item[0],
    )

    row = RankingRow(member=member, entry_count=len(ranges))
    for i, (start, end, seconds) in enumerate(ranges):
        row.ranked_seconds += min(seconds, cap_seconds)
        if i == 0:
            continue
        previous_end = ranges[i - 1][1]
        gap = max(0, math.floor((start - previous_end).total_seconds()))
        row.longest_break_seconds = max(row.longest_break_seconds, gap)

    if ranges:
        row.first_start = ranges[0][0]
        row.last_end = ranges[-1][1]
    return row


def build_team_ranking(
    entries_by_member: Mapping[str, Iterable[TimeEntry]],
    projects: Mapping[str, Project],
    excluded_names: Iterable[str] = DEFAULT_EXCLUDED_NAMES,
    cap_seconds: int = DEFAULT_ENTRY_CAP_SECONDS,
) -> list[RankingRow]:
    """Rank members by capped worked seconds.

    Ordering: ranked seconds descending, then entry count descending, then
    member name ascending.
    """
    rows = [
        rank_member(member, entries, projects, excluded_names, cap_seconds)
        for member, entries in entries_by_member.items()
    ]
    rows.sort(key=lambda r: (-r.ranked_seconds, -r.entry_count, r.member))
    return rows


def build_week_summary(
    entries_by_member: Mapping[str, Iterable[TimeEntry]],
    dates: list[date],
    projects: Mapping[str, Project],
    now: datetime,
    excluded_names: Iterable[str] = DEFAULT_EXCLUDED_NAMES,
) -> list[WeekRow]:
    """Per-member day totals for the given dates, ordered like the leaderboard.

    Running entries count up to ``now``. Entries are attributed to their
    stored local source date.
    """
    excluded = _normalized_names(excluded_names)
    rows = []
    for member, entries in entries_by_member.items():
        days = {day: DaySummary(date=day) for day in dates}
        for entry in entries:
            summary = days.get(entry.source_date) if entry.source_date else None
            if summary is None or not counts_as_work(entry, projects, excluded):
                continue
            summary.seconds += entry.elapsed_seconds(now)
            summary.entry_count += 1
        rows.append(WeekRow(member=member, days=[days[day] for day in dates]))

    rows.sort(key=lambda r: (-r.total_seconds, -r.entry_count, r.member))
    return rows


def week_total_seconds(
    entries: Iterable[TimeEntry],
    projects: Mapping[str, Project],
) -> tuple[int, int]:
    """Closed work seconds and entry count, used for a member's week total."""
    total = 0
    count = 0
    for entry in entries:
        if entry.is_running or not counts_as_work(entry, projects, ()):
            continue
        total += entry.elapsed_seconds(entry.stop_at or entry.start_at)
        count += 1
    return total, count
