"""API endpoints.

Available routers:
- system: Health checks and system status
- timer: Start, stop, patch and backdate the running timer
- entries: Manual entries, edits, deletes and day views
- team: Team day leaderboard and week rollup
- projects: Project listing and settings
"""

__all__ = ["system", "timer", "entries", "team", "projects"]

from timeboard.api.endpoints import (  # noqa: F401
    entries,
    projects,
    system,
    team,
    timer,
)
