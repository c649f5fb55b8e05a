"""
Push Dispatcher.

Emits a "new_notification" event to every subscriber of a broadcast that
currently has a live session.

Per subscriber:
- not in the registry       -> skipped (not_connected)
- handle no longer live     -> skipped (stale)
- emit raises / times out   -> skipped (failed), the rest still proceed
- otherwise                 -> sent

There is no deduplication. Dispatching the same event twice sends it twice
to every connected subscriber (at-least-once, possibly duplicated).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Sequence

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.events import BroadcastEvent
from ws_gateway.components.connection.registry import SessionRegistry
from ws_gateway.components.connection.transport import SessionTransport
from ws_gateway.components.core.constants import (
    EVENT_NEW_NOTIFICATION,
    UNKNOWN_PUBLISHER_NAME,
)
from ws_gateway.components.events.types import NotificationPayload
from ws_gateway.core.notifications.resolver import PublisherDirectory

logger = get_logger(__name__)


@dataclass
class DispatchResult:
    """What a dispatch did, per subscriber category."""

    sent: int = 0
    not_connected: int = 0
    stale: int = 0
    failed: int = 0
    recipients: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def total_subscribers(self) -> int:
        return self.sent + self.not_connected + self.stale + self.failed

    @property
    def connected(self) -> int:
        """Subscribers that had a registry entry."""
        return self.sent + self.stale + self.failed


class PushDispatcher:
    """
    Delivers notification payloads to live sessions.

    The registry is referenced, not owned: the connection lifecycle writes
    it, the dispatcher only reads it and treats every entry as possibly
    stale.

    Usage:
        dispatcher = PushDispatcher(registry, WebSocketTransport(), SqlPublisherDirectory())
        result = await dispatcher.dispatch(event, [1, 2, 3])
    """

    def __init__(
        self,
        registry: SessionRegistry[Any],
        transport: SessionTransport | None,
        publishers: PublisherDirectory,
        send_timeout: float | None = None,
    ):
        """
        Args:
            registry: Session registry to read handles from.
            transport: Realtime transport. None means the transport server
                is not running; dispatch then sends nothing.
            publishers: Lookup for the publisher display name.
            send_timeout: Seconds allowed per emit (default: settings.ws_send_timeout).
        """
        self._registry = registry
        self._transport = transport
        self._publishers = publishers
        self._send_timeout = (
            send_timeout if send_timeout is not None else settings.ws_send_timeout
        )

    async def resolve_display_name(self, publisher_id: int) -> str:
        """Publisher display name, or the sentinel if it cannot be looked up."""
        try:
            publisher = await self._publishers.get_publisher(publisher_id)
        except Exception as e:
            logger.warning(
                "Publisher lookup failed, using fallback name",
                influencer_id=publisher_id,
                error=str(e),
            )
            return UNKNOWN_PUBLISHER_NAME

        if publisher is None or not publisher.display_name:
            return UNKNOWN_PUBLISHER_NAME
        return publisher.display_name

    async def dispatch(
        self,
        event: BroadcastEvent,
        subscribers: Sequence[int],
        publisher_display_name: str | None = None,
    ) -> DispatchResult:
        """
        Emit the notification to each connected subscriber.

        Args:
            event: The broadcast being fanned out.
            subscribers: Subscriber ids resolved for the publisher.
            publisher_display_name: Display name to use; looked up when None.

        Returns:
            DispatchResult with per-category counts.
        """
        result = DispatchResult()

        if self._transport is None:
            logger.error("Realtime transport not available, nothing sent", feed_id=event.content_id)
            result.not_connected = len(subscribers)
            return result

        if publisher_display_name is None:
            publisher_display_name = await self.resolve_display_name(event.publisher_id)

        payload = NotificationPayload.for_content(
            content_id=event.content_id,
            publisher_id=event.publisher_id,
            publisher_display_name=publisher_display_name,
        ).to_dict()

        for subscriber_id in subscribers:
            handle = self._registry.get(subscriber_id)
            if handle is None:
                result.not_connected += 1
                continue

            if not self._transport.is_live(handle):
                result.stale += 1
                logger.debug(
                    "Session not connected for subscriber",
                    subscriber_id=subscriber_id,
                    feed_id=event.content_id,
                )
                continue

            try:
                await asyncio.wait_for(
                    self._transport.emit(handle, EVENT_NEW_NOTIFICATION, payload),
                    timeout=self._send_timeout,
                )
            except asyncio.TimeoutError:
                result.failed += 1
                result.errors.append(f"subscriber {subscriber_id}: send timed out")
                logger.warning(
                    "Notification send timed out",
                    subscriber_id=subscriber_id,
                    feed_id=event.content_id,
                    timeout=self._send_timeout,
                )
                continue
            except Exception as e:
                result.failed += 1
                result.errors.append(f"subscriber {subscriber_id}: {e}")
                logger.warning(
                    "Notification send failed",
                    subscriber_id=subscriber_id,
                    feed_id=event.content_id,
                    error=str(e),
                )
                continue

            result.sent += 1
            result.recipients.append(subscriber_id)
            logger.debug(
                "Notification sent",
                subscriber_id=subscriber_id,
                feed_id=event.content_id,
            )

        logger.info(
            "Notifications dispatched",
            feed_id=event.content_id,
            influencer_id=event.publisher_id,
            sent=result.sent,
            connected=result.connected,
            subscribers=len(subscribers),
        )
        return result
