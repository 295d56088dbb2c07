"""Cancellation of superseded writes.

Beginning a write for a field cancels the previous in-flight write for that
same field, so only the latest edit reaches the store.
"""

import threading
from typing import Hashable, Optional

from timeboard.core.errors import CancelledWriteError


class CancellationToken:
    """Flag checked by a write before it touches the store."""

    def __init__(self, label: str = ""):
        self.label = label
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise CancelledWriteError if a newer write superseded this one."""
        if self._event.is_set():
            raise CancelledWriteError(f"Write superseded by a newer edit: {self.label}")


class LatestWriteRegistry:
    """Tracks the latest write token per field key."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: dict[Hashable, CancellationToken] = {}

    def begin(self, field_key: Hashable) -> CancellationToken:
        """Start a write for ``field_key``, cancelling the one before it."""
        token = CancellationToken(str(field_key))
        with self._lock:
            previous = self._tokens.get(field_key)
            self._tokens[field_key] = token
        if previous is not None:
            previous.cancel()
        return token

    def finish(self, field_key: Hashable, token: CancellationToken) -> None:
        """Forget ``token`` if it is still the latest for its field."""
        with self._lock:
            if self._tokens.get(field_key) is token:
                del self._tokens[field_key]

    def current(self, field_key: Hashable) -> Optional[CancellationToken]:
        with self._lock:
            return self._tokens.get(field_key)
