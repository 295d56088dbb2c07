"""Running timer manager and day/week queries."""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from timeboard.core.cancellation import CancellationToken
from timeboard.core.dates import bucket_date, day_bounds, ensure_utc, week_dates
from timeboard.core.errors import ConflictError, NotFoundError, OwnershipError, ValidationError
from timeboard.core.members import MemberDirectory
from timeboard.core.models import (
    Project,
    RankingRow,
    RunningEntry,
    TimeEntry,
    TimelineBlock,
    WeekRow,
    normalize_text,
    utc_now,
)
from timeboard.core.ranking import (
    DEFAULT_ENTRY_CAP_SECONDS,
    DEFAULT_EXCLUDED_NAMES,
    build_team_ranking,
    build_week_summary,
    week_total_seconds,
)
from timeboard.core.storage import StorageManager
from timeboard.core.timeline import TimelineSettings, build_timeline

logger = logging.getLogger(__name__)


@dataclass
class StartResult:
    """Outcome of ``start``: ``started`` is False when a timer was already running."""

    started: bool
    entry: RunningEntry


@dataclass
class DeleteResult:
    entry_id: int
    was_running: bool


@dataclass
class DayView:
    """A member's entries for one local day."""

    member: str
    date: date
    entries: list[TimeEntry]
    running: Optional[RunningEntry]
    total_seconds: int
    blocks: list[TimelineBlock]
    projects: dict[str, Project] = field(default_factory=dict)
    now: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "member": self.member,
            "date": self.date.isoformat(),
            "total_seconds": self.total_seconds,
            "entries": [
                e.to_public(self.projects.get(e.project_key or ""), self.now) for e in self.entries
            ],
            "current": self.running.to_dict() if self.running else None,
            "timeline": [block.to_dict() for block in self.blocks],
        }


@dataclass
class TeamDay:
    """Every member's day plus the leaderboard."""

    date: date
    members: list[DayView]
    ranking: list[RankingRow]

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "members": [view.to_dict() for view in self.members],
            "ranking": [row.to_dict() for row in self.ranking],
        }


@dataclass
class TeamWeek:
    """Seven-day rollup for every member."""

    end_date: date
    dates: list[date]
    rows: list[WeekRow]

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_date": self.dates[0].isoformat(),
            "end_date": self.end_date.isoformat(),
            "members": [row.to_dict() for row in self.rows],
        }


class TimeTracker:
    """Per-member timer lifecycle on top of the store.

    Each member is either idle or running exactly one open entry. All state
    lives in the store; every operation re-reads before it writes.
    """

    def __init__(
        self,
        storage: Optional[StorageManager] = None,
        members: Optional[MemberDirectory] = None,
        clock: Optional[Callable[[], datetime]] = None,
        entry_cap_seconds: int = DEFAULT_ENTRY_CAP_SECONDS,
        excluded_project_names: Iterable[str] = DEFAULT_EXCLUDED_NAMES,
        timeline_settings: Optional[TimelineSettings] = None,
    ):
        """Initialize time tracker.

        Args:
            storage: Storage manager instance. Creates default if None.
            members: Member directory used to resolve names
            clock: Returns the current aware UTC instant
        """
        self.storage = storage or StorageManager()
        self.members = members or MemberDirectory()
        self.clock = clock or utc_now
        self.entry_cap_seconds = entry_cap_seconds
        self.excluded_project_names = list(excluded_project_names)
        self.timeline_settings = timeline_settings or TimelineSettings()

    @classmethod
    def from_config(cls, config, storage=None, clock=None) -> "TimeTracker":
        """Build a tracker from a ConfigManager."""
        return cls(
            storage=storage or StorageManager(config.data_dir),
            members=MemberDirectory(
                config.get("team.members", []), config.get("team.aliases", {})
            ),
            clock=clock,
            entry_cap_seconds=config.get("ranking.entry_cap_seconds", DEFAULT_ENTRY_CAP_SECONDS),
            excluded_project_names=config.get(
                "ranking.excluded_project_names", list(DEFAULT_EXCLUDED_NAMES)
            ),
            timeline_settings=TimelineSettings.from_config(config),
        )

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    def today(self, tz_offset_minutes: Any = None) -> date:
        """Current member-local date for the given offset."""
        return bucket_date(self._now(), tz_offset_minutes)

    # Lookups

    def known_members(self) -> list[str]:
        """Configured members followed by any others registered in the store."""
        names = self.members.members
        seen = {name.lower() for name in names}
        for stored in self.storage.load_members():
            canonical = self.members.canonicalize(stored)
            if canonical.lower() not in seen:
                seen.add(canonical.lower())
                names.append(canonical)
        return names

    def resolve_member(self, member: Optional[str]) -> str:
        """Canonical name for a raw member name.

        Raises:
            ValidationError: If the name is blank
            NotFoundError: If the name is not a known member
        """
        if not member or not member.strip():
            raise ValidationError("Missing member")
        resolved = self.members.resolve(member)
        if resolved:
            return resolved
        canonical = self.members.canonicalize(member)
        for stored in self.storage.load_members():
            if self.members.names_match(stored, canonical):
                return self.members.canonicalize(stored)
        raise NotFoundError(f"Unknown member: {member.strip()}")

    def _project_map(self) -> dict[str, Project]:
        return {project.key: project for project in self.storage.load_projects()}

    def _project_key(self, project_name: Optional[str]) -> Optional[str]:
        name = normalize_text(project_name)
        if name is None:
            return None
        return self.storage.ensure_project(name).key

    def _project_for(self, entry: TimeEntry) -> Optional[Project]:
        return self.storage.get_project(entry.project_key) if entry.project_key else None

    def _running_rows(self, member: str) -> list[TimeEntry]:
        return self.storage.list_running(member, self.members.expand_aliases(member))

    def _running_projection(self, entry: TimeEntry) -> RunningEntry:
        return RunningEntry.from_entry(entry, self._project_for(entry), self._now())

    def _owned_entry(self, member: str, entry_id: int) -> TimeEntry:
        entry = self.storage.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry {entry_id} not found")
        if not self.members.names_match(entry.member, member):
            raise OwnershipError(f"Entry {entry_id} does not belong to {member}")
        return entry

    # Timer lifecycle

    def get_running(self, member: str) -> Optional[RunningEntry]:
        """Currently open entry for a member, or None when idle."""
        canonical = self.resolve_member(member)
        running = self._running_rows(canonical)
        if not running:
            return None
        return self._running_projection(running[0])

    def start(
        self,
        member: str,
        description: Optional[str] = None,
        project: Optional[str] = None,
        elapsed_seconds: int = 0,
        tz_offset_minutes: Any = None,
    ) -> StartResult:
        """Start a timer, or return the one already running.

        Args:
            member: Raw member name
            description: Free-text description
            project: Project name (created on the fly if unknown)
            elapsed_seconds: Backfill; the entry starts this many seconds ago
            tz_offset_minutes: Client offset used to bucket the entry

        Returns:
            StartResult with ``started=False`` if a timer was already running
        """
        canonical = self.resolve_member(member)
        if elapsed_seconds is None or elapsed_seconds < 0:
            raise ValidationError("elapsed_seconds must not be negative")

        running = self._running_rows(canonical)
        if running:
            logger.debug(f"Start ignored for {canonical}: entry {running[0].id} already running")
            return StartResult(started=False, entry=self._running_projection(running[0]))

        now = self._now()
        start_at = now - timedelta(seconds=int(elapsed_seconds))
        self.storage.ensure_member(canonical)
        entry = TimeEntry(
            id=0,
            member=canonical,
            start_at=start_at,
            description=normalize_text(description),
            project_key=self._project_key(project),
            source="manual",
            source_date=bucket_date(start_at, tz_offset_minutes),
            source_entry_id=f"manual:{canonical}:{int(now.timestamp() * 1000)}",
        )
        entry = self.storage.insert_entry(entry, upsert=False)
        logger.info(f"Timer started for {canonical} (entry {entry.id})")
        return StartResult(started=True, entry=self._running_projection(entry))

    def stop(self, member: str, tz_offset_minutes: Any = None) -> TimeEntry:
        """Stop the running timer.

        Every row flagged running for the member is closed; the most recent
        one is returned.

        Raises:
            ConflictError: If no timer is running
        """
        canonical = self.resolve_member(member)
        running = self._running_rows(canonical)
        if not running:
            raise ConflictError(f"No running timer for {canonical}")
        if len(running) > 1:
            logger.warning(
                f"{len(running)} running entries found for {canonical}; stopping all of them"
            )

        now = self._now()
        for entry in running:
            entry.stop_at = now
            entry.duration_seconds = max(0, math.floor((now - entry.start_at).total_seconds()))
            if tz_offset_minutes is not None or entry.source_date is None:
                entry.source_date = bucket_date(entry.start_at, tz_offset_minutes)
        self.storage.save_entries(running)

        stopped = running[0]
        logger.info(
            f"Timer stopped for {canonical} (entry {stopped.id}, {stopped.duration_seconds}s)"
        )
        return stopped

    def update_metadata(
        self,
        member: str,
        description: Optional[str] = None,
        project: Optional[str] = None,
    ) -> Optional[RunningEntry]:
        """Patch description/project of the running entry.

        ``None`` leaves a field unchanged; an empty string clears it.

        Returns:
            Updated running entry, or None when idle
        """
        canonical = self.resolve_member(member)
        running = self._running_rows(canonical)
        if not running:
            return None

        entry = running[0]
        if description is not None:
            entry.description = normalize_text(description)
        if project is not None:
            entry.project_key = self._project_key(project)
        self.storage.save_entry(entry)
        return self._running_projection(entry)

    def backdate(
        self,
        member: str,
        elapsed_seconds: int,
        description: Optional[str] = None,
        project: Optional[str] = None,
        tz_offset_minutes: Any = None,
    ) -> Optional[RunningEntry]:
        """Move the running entry's start so it has run ``elapsed_seconds``.

        Returns:
            Updated running entry, or None when idle
        """
        canonical = self.resolve_member(member)
        if elapsed_seconds is None or elapsed_seconds < 0:
            raise ValidationError("elapsed_seconds must not be negative")

        running = self._running_rows(canonical)
        if not running:
            return None

        entry = running[0]
        elapsed = int(elapsed_seconds)
        entry.start_at = self._now() - timedelta(seconds=elapsed)
        entry.duration_seconds = elapsed
        entry.source_date = bucket_date(entry.start_at, tz_offset_minutes)
        if description is not None:
            entry.description = normalize_text(description)
        if project is not None:
            entry.project_key = self._project_key(project)
        self.storage.save_entry(entry)
        logger.info(f"Timer for {canonical} backdated to {elapsed}s")
        return self._running_projection(entry)

    # Closed entries

    def create_manual_entry(
        self,
        member: str,
        start_at: datetime,
        duration_seconds: Optional[int] = None,
        duration_minutes: Optional[float] = None,
        description: Optional[str] = None,
        project: Optional[str] = None,
        tz_offset_minutes: Any = None,
    ) -> TimeEntry:
        """Record a closed entry after the fact.

        Exactly one of ``duration_seconds`` or ``duration_minutes`` is used
        (minutes are converted and rounded to whole seconds).

        Raises:
            ValidationError: If the duration is missing or not positive
        """
        canonical = self.resolve_member(member)
        if duration_seconds is None and duration_minutes is not None:
            if not math.isfinite(duration_minutes):
                raise ValidationError("duration must be > 0")
            duration_seconds = round(duration_minutes * 60)
        if duration_seconds is None or duration_seconds <= 0:
            raise ValidationError("duration must be > 0")

        start_at = ensure_utc(start_at)
        duration = int(duration_seconds)
        self.storage.ensure_member(canonical)
        entry = TimeEntry(
            id=0,
            member=canonical,
            start_at=start_at,
            stop_at=start_at + timedelta(seconds=duration),
            duration_seconds=duration,
            description=normalize_text(description),
            project_key=self._project_key(project),
            source="manual",
            source_date=bucket_date(start_at, tz_offset_minutes),
            source_entry_id=f"manual:{canonical}:{int(start_at.timestamp() * 1000)}:{duration}",
        )
        entry.validate()
        entry = self.storage.insert_entry(entry)
        logger.info(f"Manual entry {entry.id} recorded for {canonical} ({duration}s)")
        return entry

    def update_entry(
        self,
        member: str,
        entry_id: int,
        start_at: datetime,
        stop_at: datetime,
        description: Optional[str] = None,
        project: Optional[str] = None,
        tz_offset_minutes: Any = None,
        token: Optional[CancellationToken] = None,
    ) -> TimeEntry:
        """Replace an entry's range and optionally its description/project.

        The local-day bucket is re-derived only when the start instant moves.
        ``None`` leaves description/project unchanged; an empty string clears.

        Raises:
            ValidationError: If stop is not after start
            NotFoundError: If the entry does not exist
            OwnershipError: If the entry belongs to someone else
            CancelledWriteError: If ``token`` was superseded before writing
        """
        canonical = self.resolve_member(member)
        start_at = ensure_utc(start_at)
        stop_at = ensure_utc(stop_at)
        if stop_at <= start_at:
            raise ValidationError("stop must be after start")

        entry = self._owned_entry(canonical, entry_id)
        start_moved = entry.start_at != start_at

        entry.start_at = start_at
        entry.stop_at = stop_at
        entry.duration_seconds = math.floor((stop_at - start_at).total_seconds())
        if description is not None:
            entry.description = normalize_text(description)
        if project is not None:
            entry.project_key = self._project_key(project)
        if start_moved or entry.source_date is None:
            entry.source_date = bucket_date(start_at, tz_offset_minutes)
        entry.validate()

        if token is not None:
            token.raise_if_cancelled()
        self.storage.save_entry(entry)
        logger.info(f"Entry {entry.id} updated for {canonical}")
        return entry

    def delete_entry(self, member: str, entry_id: int) -> DeleteResult:
        """Delete one of the member's entries.

        Raises:
            NotFoundError: If the entry does not exist
            OwnershipError: If the entry belongs to someone else
        """
        canonical = self.resolve_member(member)
        entry = self._owned_entry(canonical, entry_id)
        if not self.storage.delete_entry(entry.id):
            raise NotFoundError(f"Entry {entry_id} not found")
        logger.info(f"Entry {entry.id} deleted for {canonical}")
        return DeleteResult(entry_id=entry.id, was_running=entry.is_running)

    # Queries

    def _day_view(
        self,
        member: str,
        day: date,
        tz_offset_minutes: Any,
        entries: list[TimeEntry],
        projects: dict[str, Project],
        now: datetime,
    ) -> DayView:
        day_start, day_end = day_bounds(day, tz_offset_minutes)
        running = next((e for e in reversed(entries) if e.is_running), None)
        running_project = projects.get(running.project_key or "") if running else None
        return DayView(
            member=member,
            date=day,
            entries=entries,
            running=RunningEntry.from_entry(running, running_project, now) if running else None,
            total_seconds=sum(e.elapsed_seconds(now) for e in entries),
            blocks=build_timeline(
                entries,
                day_start,
                day_end,
                now,
                projects,
                self.timeline_settings,
                tz_offset_minutes or 0,
            ),
            projects=projects,
            now=now,
        )

    def get_day_entries(self, member: str, day: date, tz_offset_minutes: Any = None) -> DayView:
        """A member's entries filed under a local day, with timeline layout."""
        canonical = self.resolve_member(member)
        entries = self.storage.load_entries(
            member=canonical,
            source_dates=[day],
            aliases=self.members.expand_aliases(canonical),
        )
        return self._day_view(
            canonical, day, tz_offset_minutes, entries, self._project_map(), self._now()
        )

    def _entries_by_member(self, dates: list[date]) -> dict[str, list[TimeEntry]]:
        grouped: dict[str, list[TimeEntry]] = {name: [] for name in self.known_members()}
        for entry in self.storage.load_entries(source_dates=dates):
            canonical = self.members.canonicalize(entry.member)
            key = next((name for name in grouped if name.lower() == canonical.lower()), canonical)
            grouped.setdefault(key, []).append(entry)
        return grouped

    def get_team_day(self, day: date, tz_offset_minutes: Any = None) -> TeamDay:
        """Every member's day and the capped, break-aware leaderboard."""
        grouped = self._entries_by_member([day])
        projects = self._project_map()
        now = self._now()
        views = [
            self._day_view(member, day, tz_offset_minutes, entries, projects, now)
            for member, entries in grouped.items()
        ]
        ranking = build_team_ranking(
            grouped, projects, self.excluded_project_names, self.entry_cap_seconds
        )
        return TeamDay(date=day, members=views, ranking=ranking)

    def get_team_week(self, end_date: date) -> TeamWeek:
        """Seven-day per-member totals ending on ``end_date``."""
        dates = week_dates(end_date)
        rows = build_week_summary(
            self._entries_by_member(dates),
            dates,
            self._project_map(),
            self._now(),
            self.excluded_project_names,
        )
        return TeamWeek(end_date=end_date, dates=dates, rows=rows)

    def get_week_total(self, member: str, end_date: date) -> dict[str, Any]:
        """Closed work seconds for the seven days ending on ``end_date``."""
        canonical = self.resolve_member(member)
        dates = week_dates(end_date)
        entries = self.storage.load_entries(
            member=canonical,
            source_dates=dates,
            aliases=self.members.expand_aliases(canonical),
        )
        total, count = week_total_seconds(entries, self._project_map())
        return {
            "member": canonical,
            "start_date": dates[0].isoformat(),
            "end_date": end_date.isoformat(),
            "total_seconds": total,
            "entry_count": count,
        }
