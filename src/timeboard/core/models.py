"""Core data models for the timer engine."""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from timeboard.core.errors import StoreShapeError, ValidationError

PROJECT_TYPES = ("work", "non_work")
ENTRY_SOURCES = ("manual", "external")
NO_PROJECT_LABEL = "No project"
NO_DESCRIPTION_LABEL = "(No description)"

PROJECT_PALETTE = [
    "#A9E8E8",
    "#83CCD2",
    "#F5E29E",
    "#E2CF88",
    "#D2CCF2",
    "#BEB9E2",
    "#E8B7CA",
    "#D8B0C8",
    "#F68BA2",
    "#DFCFF3",
    "#ADE1EF",
    "#C6EAEE",
    "#B2EAD3",
    "#B1E8ED",
    "#EDBDD5",
    "#C8EBEF",
    "#C0F3EA",
    "#F5F4D6",
]
NO_PROJECT_COLOR = "#CBD5E1"
NON_WORK_PROJECT_NAMES = frozenset({"fitness", "sleep", "non-work", "non work", "non-work-task"})
_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


def utc_now() -> datetime:
    """Current instant as aware UTC."""
    return datetime.now(timezone.utc)


def format_instant(value: Optional[datetime]) -> Optional[str]:
    """Serialize an instant as ISO-8601 UTC, or None."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def normalize_text(value: Optional[str]) -> Optional[str]:
    """Trim free text; blank becomes None."""
    trimmed = (value or "").strip()
    return trimmed or None


def slugify(value: str) -> str:
    """Lowercase slug limited to 64 characters."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")[:64]


def _text_hash(value: str) -> int:
    result = 0
    for char in value:
        result = (result * 31 + ord(char)) & 0xFFFFFFFF
    return result


def project_color_for(name: Optional[str], explicit: Optional[str] = None) -> str:
    """Pick a display color for a project.

    An explicit ``#RRGGBB`` color wins; otherwise the name hashes onto a fixed
    pastel palette so the same project always gets the same color.
    """
    explicit = (explicit or "").strip()
    if _HEX_COLOR.match(explicit):
        return explicit.upper()
    normalized = (name or "").strip().lower()
    if not normalized or normalized == NO_PROJECT_LABEL.lower():
        return NO_PROJECT_COLOR
    return PROJECT_PALETTE[_text_hash(normalized) % len(PROJECT_PALETTE)]


def default_project_type(name: str) -> str:
    """Project type inferred from a name when none is given."""
    if name.strip().lower() in NON_WORK_PROJECT_NAMES:
        return "non_work"
    return "work"


def manual_project_key(name: str) -> str:
    """Key for a project created on the fly from a free-text name."""
    cleaned = name.strip()
    slug = slugify(cleaned)
    if not slug:
        signed = _text_hash(cleaned)
        if signed >= 2**31:
            signed -= 2**32
        slug = f"manual-{abs(signed) + 1}"
    return f"manual:{slug}"


def _parse_instant(value: Any, field_name: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        raise StoreShapeError(f"Stored {field_name} is not an ISO timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise StoreShapeError(f"Stored row is missing '{key}'")
    return data[key]


@dataclass
class Project:
    """Project definition.

    Attributes:
        key: Project key (``manual:<slug>`` for projects created on the fly)
        name: Display name
        color: Display color (hex)
        project_type: ``work`` or ``non_work``; non-work time is never ranked
        created_at: Creation timestamp
    """

    key: str
    name: str
    color: str = NO_PROJECT_COLOR
    project_type: str = "work"
    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_work(self) -> bool:
        return self.project_type != "non_work"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CSV/JSON serialization."""
        return {
            "key": self.key,
            "name": self.name,
            "color": self.color,
            "project_type": self.project_type,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        """Create Project from a stored row.

        Raises:
            StoreShapeError: If the row does not have the expected shape
        """
        project_type = data.get("project_type") or "work"
        if project_type not in PROJECT_TYPES:
            raise StoreShapeError(f"Unknown project type: {project_type!r}")
        name = str(_require(data, "name"))
        return cls(
            key=str(_require(data, "key")),
            name=name,
            color=project_color_for(name, data.get("color")),
            project_type=project_type,
            created_at=_parse_instant(_require(data, "created_at"), "created_at"),
        )


@dataclass
class TimeEntry:
    """One tracked time range for a member.

    Attributes:
        id: Store-assigned identifier
        member: Canonical member name
        start_at: Start instant (UTC)
        stop_at: Stop instant (None while running)
        duration_seconds: Authoritative once stopped; None while running unless backdated
        description: Free-text description
        project_key: Project reference (None means "No project")
        source: ``manual`` or ``external``
        source_date: Member-local day the entry is filed under
        source_entry_id: Upsert key for manual creations
        synced_at: Last write time
    """

    id: int
    member: str
    start_at: datetime
    stop_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    description: Optional[str] = None
    project_key: Optional[str] = None
    source: str = "manual"
    source_date: Optional[date] = None
    source_entry_id: Optional[str] = None
    synced_at: datetime = field(default_factory=utc_now)

    @property
    def is_running(self) -> bool:
        """Check if this entry is still open."""
        return self.stop_at is None

    def elapsed_seconds(self, now: datetime) -> int:
        """Worked seconds: stored duration once stopped, now - start while running."""
        if not self.is_running and self.duration_seconds is not None:
            return max(0, self.duration_seconds)
        end = self.stop_at or now
        return max(0, math.floor((end - self.start_at).total_seconds()))

    def effective_end(self, now: datetime) -> datetime:
        """End instant used for layout: stop, else start + known duration, else now."""
        if self.stop_at is not None:
            return self.stop_at
        if self.duration_seconds is not None:
            return self.start_at + timedelta(seconds=self.duration_seconds)
        return now

    def validate(self) -> None:
        """Check entry invariants.

        Raises:
            ValidationError: If stop is not after start or duration is negative
        """
        if self.stop_at is not None and self.stop_at <= self.start_at:
            raise ValidationError("stop must be after start")
        if self.duration_seconds is not None and self.duration_seconds < 0:
            raise ValidationError("duration must not be negative")
        if self.source not in ENTRY_SOURCES:
            raise ValidationError(f"Unknown entry source: {self.source}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CSV serialization."""
        return {
            "id": self.id,
            "member": self.member,
            "start_at": self.start_at.isoformat(),
            "stop_at": self.stop_at.isoformat() if self.stop_at else "",
            "duration_seconds": "" if self.duration_seconds is None else self.duration_seconds,
            "is_running": self.is_running,
            "description": self.description or "",
            "project_key": self.project_key or "",
            "source": self.source,
            "source_date": self.source_date.isoformat() if self.source_date else "",
            "source_entry_id": self.source_entry_id or "",
            "synced_at": self.synced_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeEntry":
        """Create TimeEntry from a stored row.

        Raises:
            StoreShapeError: If the row does not have the expected shape
        """
        try:
            entry_id = int(_require(data, "id"))
            duration_raw = data.get("duration_seconds")
            duration = int(duration_raw) if duration_raw not in (None, "") else None
            source_date_raw = data.get("source_date")
            source_date = date.fromisoformat(source_date_raw) if source_date_raw else None
        except ValueError as e:
            raise StoreShapeError(f"Malformed stored entry: {e}")

        source = data.get("source") or "manual"
        if source not in ENTRY_SOURCES:
            raise StoreShapeError(f"Unknown entry source: {source!r}")

        return cls(
            id=entry_id,
            member=str(_require(data, "member")),
            start_at=_parse_instant(_require(data, "start_at"), "start_at"),
            stop_at=_parse_instant(data["stop_at"], "stop_at") if data.get("stop_at") else None,
            duration_seconds=duration,
            description=data["description"] if data.get("description") else None,
            project_key=data["project_key"] if data.get("project_key") else None,
            source=source,
            source_date=source_date,
            source_entry_id=data["source_entry_id"] if data.get("source_entry_id") else None,
            synced_at=_parse_instant(_require(data, "synced_at"), "synced_at"),
        )

    def to_public(self, project: Optional[Project] = None, now: Optional[datetime] = None) -> dict[str, Any]:
        """JSON-ready view of the entry with its project resolved."""
        return {
            "id": self.id,
            "member": self.member,
            "description": self.description,
            "project_name": project.name if project else None,
            "project_color": project.color if project else None,
            "start_at": format_instant(self.start_at),
            "stop_at": format_instant(self.stop_at),
            "duration_seconds": self.elapsed_seconds(now) if now else self.duration_seconds,
            "is_running": self.is_running,
            "source": self.source,
            "source_date": self.source_date.isoformat() if self.source_date else None,
        }


@dataclass
class RunningEntry:
    """Projection of a member's one open entry."""

    id: int
    member: str
    description: Optional[str]
    project_name: Optional[str]
    start_at: datetime
    elapsed_seconds: int
    source: str = "manual"

    @classmethod
    def from_entry(
        cls, entry: TimeEntry, project: Optional[Project], now: datetime
    ) -> "RunningEntry":
        """Project an open entry at ``now``."""
        return cls(
            id=entry.id,
            member=entry.member,
            description=entry.description,
            project_name=project.name if project else None,
            start_at=entry.start_at,
            elapsed_seconds=entry.elapsed_seconds(now),
            source=entry.source,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "member": self.member,
            "description": self.description,
            "project_name": self.project_name,
            "start_at": format_instant(self.start_at),
            "elapsed_seconds": self.elapsed_seconds,
            "source": self.source,
        }


@dataclass
class IdempotencyRecord:
    """Cached response of a mutating request.

    Records are never mutated; a fresh write with the same composite key
    replaces the old one.
    """

    scope: str
    member: str
    key: str
    status: int
    body: Any
    expires_at: datetime

    @property
    def cache_key(self) -> str:
        return build_cache_key(self.scope, self.member, self.key)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


def build_cache_key(scope: str, member: Optional[str], key: str) -> str:
    """Composite idempotency key ``idem:{scope}:{member}:{key}``."""
    safe_member = (member or "").strip().lower() or "unknown"
    return f"idem:{scope}:{safe_member}:{key.strip()}"


@dataclass
class TimelineBlock:
    """Render-ready position of one entry on a day timeline.

    ``top`` and ``height`` are timeline units (``hour_height`` units per hour),
    independent of any device.
    """

    id: str
    entry_id: int
    top: float
    height: float
    title: str
    project: str
    project_color: str
    time_range: str
    duration_label: str
    is_running: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entry_id": self.entry_id,
            "top": self.top,
            "height": self.height,
            "title": self.title,
            "project": self.project,
            "project_color": self.project_color,
            "time_range": self.time_range,
            "duration_label": self.duration_label,
            "is_running": self.is_running,
        }


@dataclass
class RankingRow:
    """Leaderboard row for one member."""

    member: str
    ranked_seconds: int = 0
    entry_count: int = 0
    first_start: Optional[datetime] = None
    last_end: Optional[datetime] = None
    longest_break_seconds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "member": self.member,
            "ranked_seconds": self.ranked_seconds,
            "entry_count": self.entry_count,
            "first_start": format_instant(self.first_start),
            "last_end": format_instant(self.last_end),
            "longest_break_seconds": self.longest_break_seconds,
        }


@dataclass
class DaySummary:
    """Worked seconds and entry count for one local day."""

    date: date
    seconds: int = 0
    entry_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "seconds": self.seconds, "entry_count": self.entry_count}


@dataclass
class WeekRow:
    """Seven-day rollup for one member."""

    member: str
    days: list[DaySummary]

    @property
    def total_seconds(self) -> int:
        return sum(day.seconds for day in self.days)

    @property
    def entry_count(self) -> int:
        return sum(day.entry_count for day in self.days)

    def to_dict(self) -> dict[str, Any]:
        return {
            "member": self.member,
            "total_seconds": self.total_seconds,
            "entry_count": self.entry_count,
            "days": [day.to_dict() for day in self.days],
        }
