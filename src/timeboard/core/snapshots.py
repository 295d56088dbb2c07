"""Last-good-read cache for degraded read paths."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from timeboard.core.errors import UpstreamError
from timeboard.core.models import utc_now

logger = logging.getLogger(__name__)


@dataclass
class SnapshotRead:
    """Payload of a read, flagged stale when served from the cache."""

    payload: Any
    stale: bool = False
    captured_at: Optional[datetime] = None


class SnapshotCache:
    """In-memory cache of the last successful payload per read key.

    When a read fails upstream, the last snapshot younger than ``ttl_seconds``
    is served instead, flagged stale.
    """

    def __init__(self, ttl_seconds: int = 600, clock: Optional[Callable[[], datetime]] = None):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or utc_now
        self._snapshots: dict[str, tuple[datetime, Any]] = {}

    def remember(self, key: str, payload: Any) -> None:
        self._snapshots[key] = (self.clock(), payload)

    def recall(self, key: str) -> Optional[tuple[datetime, Any]]:
        """Return (captured_at, payload) if a fresh enough snapshot exists."""
        found = self._snapshots.get(key)
        if found is None:
            return None
        captured_at, payload = found
        if self.clock() - captured_at > self.ttl:
            del self._snapshots[key]
            return None
        return found

    def read_through(self, key: str, loader: Callable[[], Any]) -> SnapshotRead:
        """Run ``loader``; on upstream failure fall back to the last snapshot.

        Raises:
            UpstreamError: If the loader fails and no snapshot is available
        """
        try:
            payload = loader()
        except UpstreamError as e:
            found = self.recall(key)
            if found is None:
                raise
            captured_at, payload = found
            logger.warning(f"Serving stale snapshot for {key}: {e.message}")
            return SnapshotRead(payload=payload, stale=True, captured_at=captured_at)

        self.remember(key, payload)
        return SnapshotRead(payload=payload)
