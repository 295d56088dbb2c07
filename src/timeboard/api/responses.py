"""Response helpers for replay-safe writes and stale-tolerant reads."""

from typing import Any, Callable, Optional

from fastapi.responses import JSONResponse  # type: ignore[import-untyped]

from timeboard.core.errors import UpstreamError
from timeboard.core.idempotency import IdempotencyCache
from timeboard.core.snapshots import SnapshotCache

IDEMPOTENCY_HEADER = "X-Idempotency-Key"
REPLAY_HEADER = "X-Idempotent-Replay"


def guarded_response(
    cache: IdempotencyCache,
    scope: str,
    member: str,
    key: Optional[str],
    operation: Callable[[], tuple[int, Any]],
) -> JSONResponse:
    """Run a mutation through the idempotency cache and render its response."""
    result = cache.execute(scope, member, key, operation)
    headers = {REPLAY_HEADER: "true"} if result.replayed else None
    return JSONResponse(result.body, status_code=result.status, headers=headers)


def stale_tolerant_response(
    snapshots: SnapshotCache,
    key: str,
    loader: Callable[[], dict[str, Any]],
    empty: Optional[dict[str, Any]] = None,
) -> JSONResponse:
    """Serve a read, falling back to the last good payload on store failure.

    With no snapshot to fall back to, the failure is returned as a 500 body
    flagged stale and padded with ``empty`` so clients can still render.
    """
    try:
        read = snapshots.read_through(key, loader)
    except UpstreamError as e:
        body = e.to_body()
        body["stale"] = True
        body.update(empty or {})
        return JSONResponse(body, status_code=e.status_code)

    body = dict(read.payload)
    body["stale"] = read.stale
    return JSONResponse(body)
