"""Core timer engine: store, lifecycle, bucketing, layout and ranking."""

from timeboard.core.models import Project, RunningEntry, TimeEntry
from timeboard.core.tracker import TimeTracker

__all__ = ["Project", "RunningEntry", "TimeEntry", "TimeTracker"]
