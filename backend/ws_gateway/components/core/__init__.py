"""
Core WebSocket Gateway components: constants.
"""

from ws_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    EVENT_NEW_NOTIFICATION,
    EVENT_CONNECTED,
    UNKNOWN_PUBLISHER_NAME,
)

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "EVENT_NEW_NOTIFICATION",
    "EVENT_CONNECTED",
    "UNKNOWN_PUBLISHER_NAME",
]
