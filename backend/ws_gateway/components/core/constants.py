"""
WebSocket Gateway Constants.

Centralized constants with documentation explaining each value.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "EVENT_NEW_NOTIFICATION",
    "EVENT_CONNECTED",
    "MSG_PING_PLAIN",
    "MSG_PONG_PLAIN",
    "UNKNOWN_PUBLISHER_NAME",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    """

    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down or client navigating away
    POLICY_VIOLATION = 1008  # Generic policy violation
    SERVER_ERROR = 1011  # Unexpected server error


class WSConstants:
    """
    WebSocket Gateway operational constants.

    Values that operators may want to change live in settings.py instead
    (ws_send_timeout, db_lookup_timeout, bus_*).
    """

    # WS_ACCEPT_TIMEOUT: 5 seconds
    # WebSocket handshake should complete within TCP timeout.
    WS_ACCEPT_TIMEOUT: Final[float] = 5.0

    # CONSUMER_DRAIN_TIMEOUT: 10 seconds
    # Upper bound on how long shutdown waits for in-flight pipelines before
    # closing the bus channel. Messages still unacknowledged at that point
    # are redelivered to nobody (the group is destroyed) and are lost for
    # this instance only.
    CONSUMER_DRAIN_TIMEOUT: Final[float] = 10.0

    # Read error backoff: exponential from 1s, capped at 30s, +30% jitter
    ERROR_BASE_DELAY: Final[float] = 1.0
    ERROR_MAX_DELAY: Final[float] = 30.0
    ERROR_JITTER_FACTOR: Final[float] = 0.3


# Outbound realtime event names
EVENT_NEW_NOTIFICATION: Final[str] = "new_notification"
EVENT_CONNECTED: Final[str] = "connected"

# Heartbeat messages
MSG_PING_PLAIN: Final[str] = "ping"
MSG_PONG_PLAIN: Final[str] = "pong"

# Display name used when the publisher cannot be looked up
UNKNOWN_PUBLISHER_NAME: Final[str] = "Unknown"
