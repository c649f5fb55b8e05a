"""
Notification Pipeline.

Turns one bus message body into notifications:

    decode -> resolve subscribers -> record -> push

Steps run strictly in that order for one message. Decode and resolve
failures propagate (the consumer requeues the message); recording and push
failures are recovered inside their components.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.config.logging import get_logger
from shared.infrastructure.events import BroadcastEvent
from ws_gateway.core.notifications.dispatcher import DispatchResult, PushDispatcher
from ws_gateway.core.notifications.recorder import DeliveryRecorder, RecordOutcome
from ws_gateway.core.notifications.resolver import SubscriberResolver

logger = get_logger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    event: BroadcastEvent
    subscribers: list[int]
    record: RecordOutcome
    dispatch: DispatchResult


class NotificationPipeline:
    """
    Drives one broadcast through resolve, record and push.

    Usage:
        pipeline = NotificationPipeline(resolver, recorder, dispatcher)
        await pipeline.handle_message(body)  # raises -> requeue
    """

    def __init__(
        self,
        resolver: SubscriberResolver,
        recorder: DeliveryRecorder,
        dispatcher: PushDispatcher,
    ):
        self._resolver = resolver
        self._recorder = recorder
        self._dispatcher = dispatcher

    async def handle_message(self, body: str | bytes) -> PipelineResult:
        """
        Decode a bus message body and process it.

        Raises:
            EventDecodeError: Body is not a broadcast event.
            ResolutionError: Subscribers could not be resolved.
        """
        event = BroadcastEvent.decode(body)
        return await self.process(event)

    async def process(self, event: BroadcastEvent) -> PipelineResult:
        """Run resolve -> record -> push for a decoded event."""
        logger.info(
            "Processing broadcast",
            feed_id=event.content_id,
            influencer_id=event.publisher_id,
            message=event.text,
        )

        subscribers = await self._resolver.resolve_subscribers(event.publisher_id)
        logger.debug(
            "Subscribers resolved",
            influencer_id=event.publisher_id,
            count=len(subscribers),
        )

        record = await self._recorder.record(subscribers, event.content_id)
        dispatch = await self._dispatcher.dispatch(event, subscribers)

        logger.info(
            "Broadcast processed",
            feed_id=event.content_id,
            influencer_id=event.publisher_id,
            record_status=record.status.value,
            sent=dispatch.sent,
        )
        return PipelineResult(
            event=event,
            subscribers=list(subscribers),
            record=record,
            dispatch=dispatch,
        )
