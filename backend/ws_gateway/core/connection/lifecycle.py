"""
Connection Lifecycle Management.

Handles WebSocket connection acceptance and disconnection, and is the only
writer of the session registry.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from shared.config.logging import get_logger, audit_session_event
from ws_gateway.components.connection.registry import SessionRegistry
from ws_gateway.components.connection.transport import (
    SessionTransport,
    WebSocketTransport,
    is_ws_connected,
)
from ws_gateway.components.core.constants import (
    EVENT_CONNECTED,
    WSCloseCode,
    WSConstants,
)

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)


class ConnectionLifecycle:
    """
    Manages the lifecycle of WebSocket sessions.

    Responsibilities:
    - Accept new connections with validation
    - Register the session (replacing any previous one of the subscriber)
    - Unregister on disconnect, without evicting a newer session
    """

    def __init__(
        self,
        registry: SessionRegistry["WebSocket"] | None = None,
        transport: SessionTransport | None = None,
    ) -> None:
        self.registry: SessionRegistry["WebSocket"] = (
            registry if registry is not None else SessionRegistry()
        )
        self.transport: SessionTransport = transport or WebSocketTransport()
        self._shutdown = False

    @property
    def total_connections(self) -> int:
        """Current number of registered sessions."""
        return len(self.registry)

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def set_shutdown(self, value: bool) -> None:
        self._shutdown = value

    async def connect(
        self,
        websocket: "WebSocket",
        subscriber_id: int,
        timeout: float = WSConstants.WS_ACCEPT_TIMEOUT,
    ) -> None:
        """
        Accept a WebSocket connection and register it.

        Raises:
            ConnectionError: If the server is shutting down, or accepting or
                greeting the socket fails (the session is not left registered).
            ValueError: If subscriber_id is not a positive integer.
        """
        if self._shutdown:
            raise ConnectionError("Server is shutting down")

        if isinstance(subscriber_id, bool) or not isinstance(subscriber_id, int) or subscriber_id <= 0:
            raise ValueError(f"Invalid subscriber_id: {subscriber_id}")

        try:
            await asyncio.wait_for(websocket.accept(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionError("WebSocket accept timed out")
        except Exception as e:
            raise ConnectionError(f"WebSocket accept failed: {e}")

        previous = self.registry.set(subscriber_id, websocket)
        audit_session_event("CONNECT", subscriber_id=subscriber_id)

        if previous is not None and previous is not websocket:
            audit_session_event(
                "REPLACED",
                subscriber_id=subscriber_id,
                reason="newer connection registered",
            )
            await self._close_replaced(previous, subscriber_id)

        try:
            await self.transport.emit(
                websocket,
                EVENT_CONNECTED,
                {"subscriberId": subscriber_id},
            )
        except Exception as e:
            if self.registry.remove(subscriber_id, websocket):
                audit_session_event(
                    "DISCONNECT",
                    subscriber_id=subscriber_id,
                    reason="greeting failed",
                )
            raise ConnectionError(f"WebSocket greeting failed: {e}")

    async def _close_replaced(self, websocket: "WebSocket", subscriber_id: int) -> None:
        if not is_ws_connected(websocket):
            return
        try:
            await websocket.close(
                code=WSCloseCode.NORMAL,
                reason="Replaced by a newer connection",
            )
        except Exception as e:
            logger.debug(
                "Error closing replaced session",
                subscriber_id=subscriber_id,
                error=str(e),
            )

    async def disconnect(
        self,
        websocket: "WebSocket",
        subscriber_id: int,
        reason: str | None = None,
    ) -> bool:
        """
        Remove a session from the registry.

        Returns:
            True if the registry entry for this socket was removed; False if
            it had already been replaced by a newer session.
        """
        removed = self.registry.remove(subscriber_id, websocket)
        if removed:
            audit_session_event("DISCONNECT", subscriber_id=subscriber_id, reason=reason)
        return removed
