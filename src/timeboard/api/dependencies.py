"""Dependency injection for FastAPI endpoints.

Everything is read from ``app.state`` so one application instance serves a
single store, clock and cache set.
"""

from fastapi import Request  # type: ignore[import-untyped]

from timeboard.core.cancellation import LatestWriteRegistry
from timeboard.core.config import ConfigManager
from timeboard.core.idempotency import IdempotencyCache
from timeboard.core.snapshots import SnapshotCache
from timeboard.core.storage import StorageManager
from timeboard.core.tracker import TimeTracker


def get_config(request: Request) -> ConfigManager:
    """Configuration manager of the running app."""
    config: ConfigManager = request.app.state.config
    return config


def get_storage(request: Request) -> StorageManager:
    storage: StorageManager = request.app.state.storage
    return storage


def get_tracker(request: Request) -> TimeTracker:
    """Tracker bound to the app's store and clock.

    Built per request so config edits (team members, ranking settings) apply
    without a restart.
    """
    return TimeTracker.from_config(
        request.app.state.config,
        storage=request.app.state.storage,
        clock=request.app.state.clock,
    )


def get_idempotency(request: Request) -> IdempotencyCache:
    cache: IdempotencyCache = request.app.state.idempotency
    return cache


def get_snapshots(request: Request) -> SnapshotCache:
    snapshots: SnapshotCache = request.app.state.snapshots
    return snapshots


def get_write_registry(request: Request) -> LatestWriteRegistry:
    registry: LatestWriteRegistry = request.app.state.write_registry
    return registry
