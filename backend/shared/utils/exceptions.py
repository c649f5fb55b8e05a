"""
Centralized domain exceptions for consistent error handling.

Usage:
    from shared.utils.exceptions import ResolutionError, EventDecodeError

    raise ResolutionError(publisher_id, "unknown publisher")
    raise EventDecodeError("body is not valid JSON", body=raw[:200])

Each exception keeps the structured context it was raised with so that
callers can log it without re-deriving identifiers.
"""

from typing import Any


class NotifierError(Exception):
    """
    Base exception for the notification pipeline.

    All domain exceptions inherit from this class so a pipeline failure
    can be told apart from a programming error when it is logged.
    """

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def __str__(self) -> str:
        return self.detail


# =============================================================================
# Message decoding
# =============================================================================


class EventDecodeError(NotifierError, ValueError):
    """
    A bus message body could not be decoded into a broadcast event.

    Fatal for the message it came from; the consumer still requeues it.
    """


# =============================================================================
# Collaborator failures
# =============================================================================


class ResolutionError(NotifierError):
    """
    Subscribers of a publisher could not be resolved.

    Raised when the publisher is unknown or the lookup backend is
    unavailable. Propagates out of the pipeline and triggers a requeue.

    Usage:
        raise ResolutionError(7, "unknown publisher")
    """

    def __init__(self, publisher_id: int, reason: str, **context: Any):
        super().__init__(
            f"Cannot resolve subscribers of publisher {publisher_id}: {reason}",
            publisher_id=publisher_id,
            reason=reason,
            **context,
        )
        self.publisher_id = publisher_id
        self.reason = reason


# =============================================================================
# Bus
# =============================================================================


class BusConnectionError(NotifierError):
    """The consumer could not connect to the bus or declare its topology."""
