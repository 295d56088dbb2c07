"""Drag and resize gestures on the week calendar.

A gesture starts on a closed entry, tracks pointer movement in pixels and
ends either as a click (open the editor) or as a commit carrying the new
absolute start/stop instants plus a fresh idempotency key for the update.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

from timeboard.core.errors import ConflictError, ValidationError
from timeboard.core.models import TimeEntry

MINUTES_IN_DAY = 24 * 60


class DragMode(str, Enum):
    """Which edge of a block the gesture moves."""

    MOVE = "move"
    RESIZE_START = "resize-start"
    RESIZE_END = "resize-end"


@dataclass
class DragSettings:
    """Calendar geometry and gesture thresholds."""

    hour_height: float = 56
    snap_minutes: int = 5
    min_entry_minutes: int = 15
    click_threshold_px: float = 3
    suppress_click_ms: int = 250

    @classmethod
    def from_config(cls, config) -> "DragSettings":
        return cls(
            hour_height=config.get("drag.hour_height", 56),
            snap_minutes=config.get("drag.snap_minutes", 5),
            min_entry_minutes=config.get("drag.min_entry_minutes", 15),
            click_threshold_px=config.get("drag.click_threshold_px", 3),
            suppress_click_ms=config.get("drag.suppress_click_ms", 250),
        )

    @property
    def day_height(self) -> float:
        return 24 * self.hour_height

    @property
    def min_height(self) -> float:
        return self.min_entry_minutes / 60 * self.hour_height

    def snap(self, minutes: float) -> float:
        """Round minutes to the nearest snap increment."""
        return round(minutes / self.snap_minutes) * self.snap_minutes


@dataclass
class DragOutcome:
    """Result of releasing a gesture.

    ``is_click`` outcomes carry only the entry id. Commits carry the new
    range and the idempotency key to submit the update with.
    """

    entry_id: int
    is_click: bool
    start_at: Optional[datetime] = None
    stop_at: Optional[datetime] = None
    idempotency_key: Optional[str] = None


class DragSession:
    """One pointer-down to pointer-up gesture on a calendar block."""

    def __init__(
        self,
        entry: TimeEntry,
        day_start: datetime,
        mode: DragMode,
        pointer_y: float,
        settings: Optional[DragSettings] = None,
    ):
        """Capture the block's baseline geometry.

        Args:
            entry: Closed entry being dragged
            day_start: UTC instant of the local midnight the calendar column shows
            mode: Gesture mode
            pointer_y: Pointer position at pointer-down, in pixels

        Raises:
            ConflictError: If the entry is still running
        """
        if entry.is_running:
            raise ConflictError("Running entries cannot be dragged")

        self.entry = entry
        self.day_start = day_start
        self.mode = DragMode(mode)
        self.settings = settings or DragSettings()
        self.start_pointer_y = pointer_y
        self.has_moved = False

        hour_height = self.settings.hour_height
        minutes_from_start = (entry.start_at - day_start).total_seconds() / 60
        duration_minutes = max(
            self.settings.min_entry_minutes,
            (entry.stop_at - entry.start_at).total_seconds() / 60,
        )
        self.initial_top = minutes_from_start / 60 * hour_height
        self.initial_height = duration_minutes / 60 * hour_height
        self.preview_top = self.initial_top
        self.preview_height = self.initial_height

    def move(self, pointer_y: float) -> tuple[float, float]:
        """Update the preview from the current pointer position.

        Returns:
            (preview_top, preview_height) in pixels
        """
        s = self.settings
        delta_px = pointer_y - self.start_pointer_y
        if abs(delta_px) >= s.click_threshold_px:
            self.has_moved = True

        delta_height = s.snap(delta_px / s.hour_height * 60) / 60 * s.hour_height

        if self.mode is DragMode.MOVE:
            max_top = s.day_height - self.initial_height
            self.preview_top = max(0.0, min(max_top, self.initial_top + delta_height))
            self.preview_height = self.initial_height
        elif self.mode is DragMode.RESIZE_START:
            end_px = self.initial_top + self.initial_height
            max_top = end_px - s.min_height
            self.preview_top = max(0.0, min(max_top, self.initial_top + delta_height))
            self.preview_height = max(s.min_height, end_px - self.preview_top)
        else:
            max_height = s.day_height - self.initial_top
            self.preview_top = self.initial_top
            self.preview_height = max(
                s.min_height, min(max_height, self.initial_height + delta_height)
            )

        return self.preview_top, self.preview_height

    def minute_to_instant(self, minute_of_day: float) -> datetime:
        clamped = max(0, min(MINUTES_IN_DAY, minute_of_day))
        return self.day_start + timedelta(minutes=clamped)

    def release(self) -> DragOutcome:
        """Finish the gesture.

        A gesture that never moved past the click threshold is a click.
        """
        if not self.has_moved:
            return DragOutcome(entry_id=self.entry.id, is_click=True)

        s = self.settings
        start_minute = round(self.preview_top / s.hour_height * 60)
        duration_minutes = max(s.min_entry_minutes, round(self.preview_height / s.hour_height * 60))
        end_minute = min(MINUTES_IN_DAY, start_minute + duration_minutes)

        start_at = self.minute_to_instant(start_minute)
        stop_at = self.minute_to_instant(end_minute)
        if stop_at <= start_at:
            raise ValidationError("Dragged range is empty")

        return DragOutcome(
            entry_id=self.entry.id,
            is_click=False,
            start_at=start_at,
            stop_at=stop_at,
            idempotency_key=str(uuid4()),
        )


class ClickGuard:
    """Swallows the synthetic click that follows a committed drag."""

    def __init__(self, window_ms: int = 250, clock: Optional[Callable[[], float]] = None):
        self.window_ms = window_ms
        self.clock = clock or time.monotonic
        self._armed_until: Optional[float] = None

    def arm(self) -> None:
        self._armed_until = self.clock() + self.window_ms / 1000

    def should_suppress(self) -> bool:
        """True while the window is open. The first check after expiry disarms."""
        if self._armed_until is None:
            return False
        if self.clock() <= self._armed_until:
            return True
        self._armed_until = None
        return False
