"""
Session Registry - subscriber id to live connection handle.

Owned by the connection lifecycle (the only writer, on connect and
disconnect). The push dispatcher holds a reference and only reads it.

A subscriber missing from the registry is "not currently reachable",
never an error. A handle found here may already be dead by the time it
is used; readers must check liveness at send time.
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Generic, TypeVar

from shared.config.logging import get_logger

logger = get_logger(__name__)

H = TypeVar("H")


class SessionRegistry(Generic[H]):
    """
    Thread- and task-safe map of subscriber id -> connection handle.

    One handle per subscriber: a new connection replaces the previous one,
    matching how the transport tracks a single socket per user.

    Thread Safety:
    - Every operation holds a short threading.Lock with no awaits inside,
      so it is safe from the event loop and from worker threads alike.
    - snapshot() returns an immutable copy (MappingProxyType).
    """

    def __init__(self) -> None:
        self._sessions: dict[int, H] = {}
        self._lock = threading.Lock()

    def get(self, subscriber_id: int) -> H | None:
        """Handle for a subscriber, or None if not connected."""
        with self._lock:
            return self._sessions.get(subscriber_id)

    def set(self, subscriber_id: int, handle: H) -> H | None:
        """
        Register a handle for a subscriber.

        Returns:
            The handle it replaced, if any.
        """
        with self._lock:
            previous = self._sessions.get(subscriber_id)
            self._sessions[subscriber_id] = handle
        logger.debug(
            "Session registered",
            subscriber_id=subscriber_id,
            replaced=previous is not None and previous is not handle,
        )
        return previous

    def remove(self, subscriber_id: int, handle: H | None = None) -> bool:
        """
        Unregister a subscriber.

        When handle is given, the entry is only removed if it still points
        at that handle, so a late disconnect of a replaced connection does
        not evict the newer one.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            current = self._sessions.get(subscriber_id)
            if current is None:
                return False
            if handle is not None and current is not handle:
                return False
            del self._sessions[subscriber_id]
        logger.debug("Session removed", subscriber_id=subscriber_id)
        return True

    def __contains__(self, subscriber_id: object) -> bool:
        with self._lock:
            return subscriber_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def snapshot(self) -> MappingProxyType[int, H]:
        """Point-in-time copy of the registry (immutable view)."""
        with self._lock:
            return MappingProxyType(dict(self._sessions))
