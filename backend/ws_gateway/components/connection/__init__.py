"""
Connection components: session registry and transport contract.
"""

from ws_gateway.components.connection.registry import SessionRegistry
from ws_gateway.components.connection.transport import (
    SessionTransport,
    WebSocketTransport,
    is_ws_connected,
)

__all__ = [
    "SessionRegistry",
    "SessionTransport",
    "WebSocketTransport",
    "is_ws_connected",
]
