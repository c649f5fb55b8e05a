"""
Outbound event types for WebSocket delivery.
"""

from ws_gateway.components.events.types import NotificationPayload

__all__ = ["NotificationPayload"]
