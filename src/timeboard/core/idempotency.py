"""Replay cache for retry-safe mutating requests."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from timeboard.core.errors import TimeboardError, UpstreamError
from timeboard.core.models import IdempotencyRecord, build_cache_key, utc_now
from timeboard.core.storage import StorageManager

logger = logging.getLogger(__name__)

SCOPE_START = "time-entries-start"
SCOPE_UPDATE = "time-entries-update"
SCOPE_CURRENT = "time-entries-current"

MIN_TTL_SECONDS = 30
MAX_TTL_SECONDS = 3600
DEFAULT_TTL_SECONDS = 600


def clamp_ttl(ttl_seconds: Optional[float]) -> int:
    """Clamp a TTL to [30, 3600] seconds. None or non-positive values use the default."""
    if ttl_seconds is None or ttl_seconds <= 0:
        return DEFAULT_TTL_SECONDS
    return max(MIN_TTL_SECONDS, min(MAX_TTL_SECONDS, int(ttl_seconds)))


@dataclass
class IdempotentResult:
    """Outcome of a guarded operation."""

    status: int
    body: Any
    replayed: bool = False


class IdempotencyCache:
    """Store of (scope, member, key) -> response, consulted before mutating.

    A hit returns the stored response verbatim and the operation is skipped.
    Successes are cached for ``success_ttl`` seconds and failures for the
    shorter ``failure_ttl`` so a genuine failure can be retried soon.
    """

    def __init__(
        self,
        storage: StorageManager,
        clock: Optional[Callable[[], datetime]] = None,
        success_ttl: int = 180,
        failure_ttl: int = 120,
    ):
        self.storage = storage
        self.clock = clock or utc_now
        self.success_ttl = success_ttl
        self.failure_ttl = failure_ttl

    def read(self, scope: str, member: Optional[str], key: Optional[str]) -> Optional[IdempotencyRecord]:
        """Look up a cached response.

        Returns:
            The record, or None if the key is blank, missing, expired or malformed
        """
        if not key or not key.strip():
            return None

        cache_key = build_cache_key(scope, member, key)
        try:
            row = self.storage.read_snapshot(cache_key)
        except UpstreamError as e:
            logger.warning(f"Idempotency lookup failed for {cache_key}: {e.message}")
            return None
        if row is None:
            return None

        payload = row["payload"]
        if not isinstance(payload, dict):
            return None
        status = payload.get("status")
        if not isinstance(status, int) or isinstance(status, bool) or not 100 <= status <= 599:
            return None

        record = IdempotencyRecord(
            scope=scope,
            member=member or "",
            key=key.strip(),
            status=status,
            body=payload.get("body"),
            expires_at=row["expires_at"],
        )
        if record.is_expired(self.clock()):
            return None
        return record

    def write(
        self,
        scope: str,
        member: Optional[str],
        key: Optional[str],
        status: int,
        body: Any,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """Store a response, replacing any previous one for the same composite key.

        Failures to write are logged and not raised.
        """
        if not key or not key.strip():
            return

        if ttl_seconds is None:
            ttl_seconds = self.success_ttl if 200 <= status < 400 else self.failure_ttl
        expires_at = self.clock() + timedelta(seconds=clamp_ttl(ttl_seconds))
        cache_key = build_cache_key(scope, member, key)

        try:
            self.storage.write_snapshot(cache_key, {"status": status, "body": body}, expires_at)
        except UpstreamError as e:
            logger.error(f"Failed to record response for {cache_key}: {e.message}")

    def execute(
        self,
        scope: str,
        member: Optional[str],
        key: Optional[str],
        operation: Callable[[], tuple[int, Any]],
    ) -> IdempotentResult:
        """Run ``operation`` at most once per (scope, member, key).

        ``operation`` returns ``(status, body)``. Typed failures it raises are
        converted into their error response and cached like any other result;
        anything else is reported as an upstream failure.
        """
        cached = self.read(scope, member, key)
        if cached is not None:
            logger.debug(f"Replaying cached response for {scope} ({member})")
            return IdempotentResult(status=cached.status, body=cached.body, replayed=True)

        try:
            status, body = operation()
        except TimeboardError as e:
            status, body = e.status_code, e.to_body()
        except Exception as e:
            logger.exception(f"Unexpected failure in {scope}")
            error = UpstreamError(str(e) or "Unexpected failure")
            status, body = error.status_code, error.to_body()

        self.write(scope, member, key, status, body)
        return IdempotentResult(status=status, body=body)
