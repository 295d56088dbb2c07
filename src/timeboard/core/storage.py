"""CSV storage manager with atomic operations and validation."""

import csv
import json
import logging
import os
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from timeboard.core.errors import StoreShapeError, UpstreamError
from timeboard.core.models import (
    Project,
    TimeEntry,
    default_project_type,
    manual_project_key,
    project_color_for,
    utc_now,
)

logger = logging.getLogger(__name__)

MEMBER_FIELDS = ["name", "created_at"]
PROJECT_FIELDS = ["key", "name", "color", "project_type", "created_at"]
ENTRY_FIELDS = [
    "id",
    "member",
    "start_at",
    "stop_at",
    "duration_seconds",
    "is_running",
    "description",
    "project_key",
    "source",
    "source_date",
    "source_entry_id",
    "synced_at",
]
SNAPSHOT_FIELDS = ["key", "payload", "expires_at"]


def _lock_file(file_obj: Any, exclusive: bool = True) -> None:
    """Lock a file in a cross-platform way."""
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        mode = msvcrt.LK_NBLCK if exclusive else msvcrt.LK_NBRLCK
        msvcrt.locking(file_obj.fileno(), mode, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(file_obj.fileno(), mode)


def _unlock_file(file_obj: Any) -> None:
    """Unlock a file in a cross-platform way."""
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        msvcrt.locking(file_obj.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        fcntl.flock(file_obj.fileno(), fcntl.LOCK_UN)


class StorageManager:
    """CSV-backed store for members, projects, time entries and cached responses.

    The store is constructed explicitly and passed to whatever needs it. Every
    table is rewritten atomically (temp file, fsync, rename) under a file lock.
    Any failure talking to the files surfaces as :class:`UpstreamError`.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize storage manager.

        Args:
            data_dir: Custom data directory. Defaults to ~/.timeboard/data
        """
        if data_dir is None:
            data_dir = Path.home() / ".timeboard" / "data"

        self.data_dir = Path(data_dir)
        self.members_file = self.data_dir / "members.csv"
        self.projects_file = self.data_dir / "projects.csv"
        self.entries_file = self.data_dir / "entries.csv"
        self.snapshots_file = self.data_dir / "cache_snapshots.csv"
        self.backup_dir = self.data_dir.parent / "backups"

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise UpstreamError(f"Cannot create data directory {self.data_dir}: {e}")

        self._initialize_files()

    def _initialize_files(self) -> None:
        """Create CSV files with headers if they don't exist."""
        for file_path, fieldnames in (
            (self.members_file, MEMBER_FIELDS),
            (self.projects_file, PROJECT_FIELDS),
            (self.entries_file, ENTRY_FIELDS),
            (self.snapshots_file, SNAPSHOT_FIELDS),
        ):
            if not file_path.exists():
                self._write_csv_atomic(file_path, fieldnames, [])

    def _write_csv_atomic(
        self, file_path: Path, fieldnames: list[str], rows: list[dict[str, Any]]
    ) -> None:
        """Write CSV file atomically using temporary file and rename.

        Raises:
            UpstreamError: If the file cannot be written
        """
        temp_file = file_path.with_suffix(".tmp")

        try:
            with open(temp_file, "w", newline="", encoding="utf-8") as f:
                _lock_file(f, exclusive=True)

                writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
                writer.writeheader()
                writer.writerows(rows)

                f.flush()
                os.fsync(f.fileno())

                _unlock_file(f)

            temp_file.replace(file_path)

        except (OSError, csv.Error) as e:
            if temp_file.exists():
                temp_file.unlink()
            logger.error(f"Failed to write {file_path.name}: {e}")
            raise UpstreamError(f"Failed to write {file_path.name}: {e}")

    def _read_csv(self, file_path: Path) -> list[dict[str, Any]]:
        """Read CSV file with locking.

        Raises:
            UpstreamError: If the file cannot be read or parsed
        """
        if not file_path.exists():
            return []

        try:
            with open(file_path, encoding="utf-8") as f:
                _lock_file(f, exclusive=False)

                try:
                    rows = list(csv.DictReader(f))
                finally:
                    _unlock_file(f)
        except (OSError, csv.Error) as e:
            logger.error(f"Failed to read {file_path.name}: {e}")
            raise UpstreamError(f"Failed to read {file_path.name}: {e}")

        return rows

    def backup(self, label: Optional[str] = None) -> Path:
        """Create backup of all data files.

        Args:
            label: Optional label for backup. Defaults to timestamp

        Returns:
            Path to backup directory
        """
        if label is None:
            label = datetime.now().strftime("%Y%m%d_%H%M%S")

        backup_path = self.backup_dir / label
        try:
            backup_path.mkdir(parents=True, exist_ok=True)
            for file in [self.members_file, self.projects_file, self.entries_file]:
                if file.exists():
                    shutil.copy2(file, backup_path / file.name)
        except OSError as e:
            raise UpstreamError(f"Backup failed: {e}")

        logger.info(f"Backup written to {backup_path}")
        return backup_path

    # Member operations

    def load_members(self) -> list[str]:
        """Load member names in insertion order."""
        return [row["name"] for row in self._read_csv(self.members_file) if row.get("name")]

    def ensure_member(self, name: str) -> str:
        """Register a member row if it does not exist yet.

        Returns:
            The stored member name
        """
        rows = self._read_csv(self.members_file)
        for row in rows:
            if (row.get("name") or "").lower() == name.lower():
                return str(row["name"])

        rows.append({"name": name, "created_at": utc_now().isoformat()})
        self._write_csv_atomic(self.members_file, MEMBER_FIELDS, rows)
        return name

    # Project operations

    def save_project(self, project: Project) -> None:
        """Save or update a project keyed by ``project.key``."""
        projects = self._read_csv(self.projects_file)
        project_dict = project.to_dict()

        for i, row in enumerate(projects):
            if row.get("key") == project.key:
                projects[i] = project_dict
                break
        else:
            projects.append(project_dict)

        self._write_csv_atomic(self.projects_file, PROJECT_FIELDS, projects)

    def load_projects(self) -> list[Project]:
        """Load all projects from CSV."""
        return [Project.from_dict(row) for row in self._read_csv(self.projects_file)]

    def get_project(self, key: str) -> Optional[Project]:
        """Get project by key."""
        for project in self.load_projects():
            if project.key == key:
                return project
        return None

    def get_project_by_name(self, name: str) -> Optional[Project]:
        """Get project by display name, case-insensitively."""
        wanted = name.strip().lower()
        for project in self.load_projects():
            if project.name.strip().lower() == wanted:
                return project
        return None

    def ensure_project(
        self,
        name: str,
        project_type: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Project:
        """Look up a project by name, creating it with a ``manual:`` key if missing.

        Args:
            name: Free-text project name
            project_type: Type for a newly created project (inferred from name if None)
            color: Explicit color for a newly created project

        Returns:
            Existing or newly created project
        """
        existing = self.get_project_by_name(name)
        if existing:
            return existing

        cleaned = name.strip()
        project = Project(
            key=manual_project_key(cleaned),
            name=cleaned,
            color=project_color_for(cleaned, color),
            project_type=project_type or default_project_type(cleaned),
        )
        self.save_project(project)
        logger.info(f"Created project '{project.name}' ({project.key})")
        return project

    # Entry operations

    def _load_entry_rows(self) -> list[dict[str, Any]]:
        return self._read_csv(self.entries_file)

    def _next_entry_id(self, rows: list[dict[str, Any]]) -> int:
        highest = 0
        for row in rows:
            try:
                highest = max(highest, int(row["id"]))
            except (KeyError, TypeError, ValueError):
                raise StoreShapeError(f"Stored entry has a malformed id: {row.get('id')!r}")
        return highest + 1

    def insert_entry(self, entry: TimeEntry, upsert: bool = True) -> TimeEntry:
        """Append a new entry, assigning the next integer id.

        With ``upsert``, an existing row with the same ``entry.source_entry_id``
        is replaced instead and keeps its id. Without it a new row is always
        appended.
        """
        rows = self._load_entry_rows()

        if upsert and entry.source_entry_id:
            for i, row in enumerate(rows):
                if row.get("source_entry_id") == entry.source_entry_id:
                    entry.id = int(row["id"])
                    entry.synced_at = utc_now()
                    rows[i] = entry.to_dict()
                    self._write_csv_atomic(self.entries_file, ENTRY_FIELDS, rows)
                    return entry

        entry.id = self._next_entry_id(rows)
        entry.synced_at = utc_now()
        rows.append(entry.to_dict())
        self._write_csv_atomic(self.entries_file, ENTRY_FIELDS, rows)
        return entry

    def save_entry(self, entry: TimeEntry) -> None:
        """Update an existing entry in place (or append if unknown)."""
        rows = self._load_entry_rows()
        entry.synced_at = utc_now()
        entry_dict = entry.to_dict()

        for i, row in enumerate(rows):
            if row.get("id") == str(entry.id):
                rows[i] = entry_dict
                break
        else:
            rows.append(entry_dict)

        self._write_csv_atomic(self.entries_file, ENTRY_FIELDS, rows)

    def save_entries(self, entries: Iterable[TimeEntry]) -> None:
        """Update several entries with a single rewrite."""
        updates = {str(entry.id): entry for entry in entries}
        if not updates:
            return

        rows = self._load_entry_rows()
        now = utc_now()
        for i, row in enumerate(rows):
            entry = updates.get(row.get("id", ""))
            if entry is not None:
                entry.synced_at = now
                rows[i] = entry.to_dict()

        self._write_csv_atomic(self.entries_file, ENTRY_FIELDS, rows)

    def get_entry(self, entry_id: int) -> Optional[TimeEntry]:
        """Get entry by id."""
        for row in self._load_entry_rows():
            if row.get("id") == str(entry_id):
                return TimeEntry.from_dict(row)
        return None

    def delete_entry(self, entry_id: int) -> bool:
        """Delete an entry by id.

        Returns:
            True if entry was deleted, False if not found
        """
        rows = self._load_entry_rows()
        remaining = [row for row in rows if row.get("id") != str(entry_id)]

        if len(remaining) == len(rows):
            return False

        self._write_csv_atomic(self.entries_file, ENTRY_FIELDS, remaining)
        return True

    def load_entries(
        self,
        member: Optional[str] = None,
        source_dates: Optional[Iterable[Any]] = None,
        aliases: Optional[Iterable[str]] = None,
    ) -> list[TimeEntry]:
        """Load entries, optionally filtered by member and local source dates.

        Args:
            member: Only entries for this member (case-insensitive)
            source_dates: Only entries filed under one of these dates
            aliases: Other spellings of ``member`` whose rows also match

        Returns:
            Entries ordered by start instant
        """
        wanted_dates = {str(d) for d in source_dates} if source_dates is not None else None
        wanted_members = None
        if member:
            wanted_members = {member.lower()} | {alias.lower() for alias in aliases or []}

        entries = []
        for row in self._load_entry_rows():
            if wanted_members and (row.get("member") or "").lower() not in wanted_members:
                continue
            if wanted_dates is not None and row.get("source_date") not in wanted_dates:
                continue
            entries.append(TimeEntry.from_dict(row))

        entries.sort(key=lambda e: e.start_at)
        return entries

    def list_running(self, member: str, aliases: Optional[Iterable[str]] = None) -> list[TimeEntry]:
        """Open entries for a member, newest start first."""
        running = [e for e in self.load_entries(member=member, aliases=aliases) if e.is_running]
        running.sort(key=lambda e: e.start_at, reverse=True)
        return running

    # Cached response operations

    def read_snapshot(self, key: str) -> Optional[dict[str, Any]]:
        """Read a cached payload row.

        Returns:
            Dict with ``payload`` and ``expires_at``, or None if missing
        """
        for row in self._read_csv(self.snapshots_file):
            if row.get("key") == key:
                try:
                    return {
                        "payload": json.loads(row["payload"]),
                        "expires_at": datetime.fromisoformat(row["expires_at"]),
                    }
                except (KeyError, TypeError, ValueError) as e:
                    raise StoreShapeError(f"Malformed cached response for {key}: {e}")
        return None

    def write_snapshot(self, key: str, payload: Any, expires_at: datetime) -> None:
        """Insert or replace a cached payload row."""
        rows = self._read_csv(self.snapshots_file)
        new_row = {
            "key": key,
            "payload": json.dumps(payload, default=str),
            "expires_at": expires_at.astimezone(timezone.utc).isoformat(),
        }

        for i, row in enumerate(rows):
            if row.get("key") == key:
                rows[i] = new_row
                break
        else:
            rows.append(new_row)

        self._write_csv_atomic(self.snapshots_file, SNAPSHOT_FIELDS, rows)

    def purge_expired_snapshots(self, now: datetime) -> int:
        """Drop expired cached payloads.

        Returns:
            Number of rows removed
        """
        rows = self._read_csv(self.snapshots_file)
        kept = []
        for row in rows:
            try:
                expires_at = datetime.fromisoformat(row.get("expires_at") or "")
            except ValueError:
                continue
            if expires_at >= now:
                kept.append(row)

        removed = len(rows) - len(kept)
        if removed:
            self._write_csv_atomic(self.snapshots_file, SNAPSHOT_FIELDS, kept)
            logger.debug(f"Purged {removed} expired cached responses")
        return removed
