"""
Session Transport - the "deliver to session" contract.

The dispatcher only needs two things from the realtime transport: whether a
handle is still live, and a way to emit a named event to exactly that
handle. WebSocketTransport implements both on top of Starlette WebSockets.
"""

from __future__ import annotations

from typing import Any, Protocol, TYPE_CHECKING

from starlette.websockets import WebSocketState

if TYPE_CHECKING:
    from fastapi import WebSocket


class SessionTransport(Protocol):
    """What the push dispatcher needs from the realtime transport."""

    def is_live(self, handle: Any) -> bool:
        """True if the handle can still receive events."""
        ...

    async def emit(self, handle: Any, event: str, payload: dict[str, Any]) -> None:
        """
        Send one event to exactly one session.

        May raise if the connection drops during the send.
        """
        ...


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette WebSockets have limited state visibility:
    - CONNECTING: Initial state (not observable here)
    - CONNECTED: Active connection
    - DISCONNECTED: Closed connection

    Transitional states are not exposed, so connections may appear
    connected briefly after disconnect initiated.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class WebSocketTransport:
    """
    SessionTransport over Starlette WebSockets.

    Events are framed as {"event": <name>, "data": <payload>} JSON text
    messages.
    """

    def is_live(self, handle: "WebSocket") -> bool:
        return is_ws_connected(handle)

    async def emit(self, handle: "WebSocket", event: str, payload: dict[str, Any]) -> None:
        await handle.send_json({"event": event, "data": payload})
