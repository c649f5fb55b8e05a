"""
Bus Channel over Redis Streams.

The notifications "exchange" is a stream; every gateway process binds its
own consumer group to it, so each process sees every broadcast (fanout)
instead of sharing them out. The group is created at "$" when the process
starts and destroyed when it stops, like an exclusive auto-delete queue.

Acknowledgement:
- ack            -> XACK
- nack, requeue  -> entry stays pending in the group; it is re-claimed with
                    XCLAIM and handed out again before any new entry is read
- nack, drop     -> XACK without processing
- max deliveries -> when bus_max_deliveries > 0 and an entry reached it,
                    a requeue copies it to the dead-letter stream instead
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass

import redis.asyncio as redis
from redis.exceptions import RedisError, ResponseError

from shared.config.logging import get_logger
from shared.infrastructure.redis.constants import (
    DEAD_LETTER_MAXLEN,
    STREAM_DATA_FIELD,
)

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BusMessage:
    """One entry delivered to this consumer."""

    message_id: str
    body: str
    delivery_count: int = 1


def _field_as_str(fields: dict, name: str) -> str:
    value = fields.get(name)
    if value is None:
        value = fields.get(name.encode())
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value or ""


class BusChannel:
    """
    A consumer group bound to the notifications stream.

    Usage:
        channel = BusChannel(connection, "notifications_exchange", group, consumer)
        await channel.declare()
        for message in await channel.read(count=10, block_ms=2000):
            ...
            await channel.ack(message)
    """

    def __init__(
        self,
        connection: redis.Redis,
        exchange: str,
        group: str,
        consumer: str,
        dead_letter_stream: str | None = None,
        max_deliveries: int = 0,
    ):
        """
        Args:
            connection: Async Redis client (decode_responses=True).
            exchange: Stream key broadcasts are published to.
            group: Consumer group owned by this process.
            consumer: Consumer name inside the group.
            dead_letter_stream: Stream for entries that exhausted their deliveries.
            max_deliveries: Deliveries before dead-lettering; 0 requeues forever.
        """
        self._connection = connection
        self.exchange = exchange
        self.group = group
        self.consumer = consumer
        self._dead_letter_stream = dead_letter_stream
        self._max_deliveries = max_deliveries

        # Pending entries waiting to be handed out again
        self._requeued: deque[str] = deque()
        # Delivery count per pending entry; the group is exclusive to this
        # process, so the local count is authoritative.
        self._deliveries: dict[str, int] = {}

    @property
    def requeued_count(self) -> int:
        return len(self._requeued)

    async def declare(self) -> None:
        """
        Create the stream (if missing) and this process's consumer group.

        '$' binds the group at the current end of the stream: only
        broadcasts published from now on are received.
        """
        try:
            await self._connection.xgroup_create(
                name=self.exchange,
                groupname=self.group,
                id="$",
                mkstream=True,
            )
            logger.info("Created consumer group", stream=self.exchange, group=self.group)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
            logger.debug("Consumer group already exists", stream=self.exchange, group=self.group)

    async def read(self, count: int, block_ms: int) -> list[BusMessage]:
        """
        Next messages for this consumer.

        Requeued entries come first and are returned without blocking.
        """
        if self._requeued:
            return await self._claim_requeued(count)

        # XREADGROUP GROUP group consumer COUNT n BLOCK ms STREAMS key >
        entries = await self._connection.xreadgroup(
            groupname=self.group,
            consumername=self.consumer,
            streams={self.exchange: ">"},
            count=count,
            block=block_ms,
        )
        if not entries:
            return []

        messages: list[BusMessage] = []
        # entries is [ [stream_name, [ [id, fields], ... ]] ]
        for _stream_name, stream_entries in entries:
            for message_id, fields in stream_entries:
                messages.append(self._track(message_id, fields or {}))
        return messages

    async def _claim_requeued(self, count: int) -> list[BusMessage]:
        ids = [self._requeued.popleft() for _ in range(min(count, len(self._requeued)))]
        try:
            claimed = await self._connection.xclaim(
                self.exchange,
                self.group,
                self.consumer,
                min_idle_time=0,
                message_ids=ids,
            )
        except RedisError:
            # Keep them queued for the next attempt, in order
            self._requeued.extendleft(reversed(ids))
            raise

        messages: list[BusMessage] = []
        returned: set[str] = set()
        for message_id, fields in claimed:
            if message_id is None or fields is None:
                continue
            returned.add(message_id)
            messages.append(self._track(message_id, fields))

        # Entries trimmed from the stream while pending cannot be redelivered
        missing = [message_id for message_id in ids if message_id not in returned]
        if missing:
            logger.warning(
                "Requeued entries no longer in stream, dropping",
                stream=self.exchange,
                msg_ids=missing,
            )
            for message_id in missing:
                self._deliveries.pop(message_id, None)
            try:
                await self._connection.xack(self.exchange, self.group, *missing)
            except RedisError as e:
                logger.warning(
                    "Failed to acknowledge dropped entries",
                    stream=self.exchange,
                    msg_ids=missing,
                    error=str(e),
                )

        return messages

    def _track(self, message_id: str, fields: dict) -> BusMessage:
        delivery_count = self._deliveries.get(message_id, 0) + 1
        self._deliveries[message_id] = delivery_count
        return BusMessage(
            message_id=message_id,
            body=_field_as_str(fields, STREAM_DATA_FIELD),
            delivery_count=delivery_count,
        )

    async def ack(self, message: BusMessage) -> None:
        """Remove the message from this consumer's pending entries."""
        await self._connection.xack(self.exchange, self.group, message.message_id)
        self._deliveries.pop(message.message_id, None)

    async def nack(self, message: BusMessage, requeue: bool = True) -> bool:
        """
        Reject a message.

        Returns:
            True if the message will be delivered again.
        """
        if requeue and not self._deliveries_exhausted(message):
            self._requeued.append(message.message_id)
            logger.warning(
                "Message requeued",
                msg_id=message.message_id,
                delivery_count=message.delivery_count,
            )
            return True

        if requeue:
            try:
                await self._dead_letter(message)
            except RedisError:
                # Stay pending and retry the dead-letter write on a later read
                self._requeued.append(message.message_id)
                raise
        await self.ack(message)
        return False

    def _deliveries_exhausted(self, message: BusMessage) -> bool:
        return self._max_deliveries > 0 and message.delivery_count >= self._max_deliveries

    async def _dead_letter(self, message: BusMessage) -> None:
        logger.error(
            "Message exceeded max deliveries, moving to DLQ",
            msg_id=message.message_id,
            delivery_count=message.delivery_count,
            dlq_stream=self._dead_letter_stream,
        )
        if not self._dead_letter_stream:
            return
        await self._connection.xadd(
            self._dead_letter_stream,
            {
                "original_id": message.message_id,
                "original_stream": self.exchange,
                STREAM_DATA_FIELD: message.body,
                "delivery_count": str(message.delivery_count),
                "failed_at": str(time.time()),
                "consumer": self.consumer,
            },
            maxlen=DEAD_LETTER_MAXLEN,
            approximate=True,
        )

    async def close(self) -> None:
        """Destroy this process's consumer group (auto-delete)."""
        self._requeued.clear()
        self._deliveries.clear()
        await self._connection.xgroup_destroy(self.exchange, self.group)
