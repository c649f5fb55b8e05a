"""
Bus Consumer.

Consumes broadcast events from the notifications stream and hands each body
to the notification pipeline.

1. start(): connects, declares this process's consumer group, starts reading.
2. Each message runs in its own task, at most bus_prefetch at a time.
3. Acknowledges (XACK) when the pipeline completes.
4. Requeues when the pipeline raises (decode, resolution or any other error).
5. close(): stops reading, waits for in-flight messages, closes channel and
   connection, in that order.
"""

from __future__ import annotations

import asyncio
import os
import random
import socket
import uuid
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError, ResponseError

from shared.config.settings import settings
from shared.config.logging import get_logger, mask_url
from shared.infrastructure.correlation import message_id_var
from shared.infrastructure.redis.constants import (
    get_consumer_group,
    get_dead_letter_stream,
)
from shared.utils.exceptions import BusConnectionError
from ws_gateway.components.core.constants import WSConstants
from ws_gateway.core.subscriber.channel import BusChannel, BusMessage

logger = get_logger(__name__)

MessageHandler = Callable[[str], Awaitable[Any]]
ConnectionFactory = Callable[[str], redis.Redis]


def _calculate_error_backoff(error_count: int) -> float:
    """
    Exponential backoff delay with jitter for consecutive read errors.

    Args:
        error_count: Number of consecutive errors

    Returns:
        Delay in seconds with jitter applied
    """
    exponential_delay = min(
        WSConstants.ERROR_BASE_DELAY * (2 ** (error_count - 1)),
        WSConstants.ERROR_MAX_DELAY,
    )
    # Jitter keeps instances from reconnecting in lockstep
    jitter = exponential_delay * WSConstants.ERROR_JITTER_FACTOR * random.random()
    return exponential_delay + jitter


def _default_connection_factory(url: str) -> redis.Redis:
    # Dedicated connection: blocking XREADGROUP must not hold a pooled one
    return redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=settings.bus_socket_timeout,
        socket_timeout=settings.bus_socket_timeout,
        health_check_interval=30,
    )


def _new_instance_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


class ConsumerHandle:
    """
    Owns the bus connection and channel of one process.

    Usage:
        consumer = ConsumerHandle(pipeline.handle_message)
        await consumer.start()
        ...
        await consumer.close()
    """

    def __init__(
        self,
        on_message: MessageHandler,
        url: str | None = None,
        exchange: str | None = None,
        prefetch: int | None = None,
        batch_count: int | None = None,
        block_ms: int | None = None,
        max_deliveries: int | None = None,
        instance_id: str | None = None,
        connection_factory: ConnectionFactory | None = None,
        drain_timeout: float = WSConstants.CONSUMER_DRAIN_TIMEOUT,
    ):
        self._on_message = on_message
        self._url = url or settings.bus_url
        self._exchange = exchange or settings.bus_exchange
        self._prefetch = prefetch if prefetch is not None else settings.bus_prefetch
        self._batch_count = batch_count if batch_count is not None else settings.bus_batch_count
        self._block_ms = block_ms if block_ms is not None else settings.bus_block_ms
        self._max_deliveries = (
            max_deliveries if max_deliveries is not None else settings.bus_max_deliveries
        )
        self.instance_id = instance_id or _new_instance_id()
        self._connection_factory = connection_factory or _default_connection_factory
        self._drain_timeout = drain_timeout

        self.connection: redis.Redis | None = None
        self.channel: BusChannel | None = None
        self.started = False

        self._start_lock = asyncio.Lock()
        self._reader_task: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()
        self._slots = asyncio.Semaphore(max(1, self._prefetch))
        self._stopping = False

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def start(self) -> bool:
        """
        Connect and start consuming.

        Returns:
            True if the consumer was started, False if it was already running.

        Raises:
            BusConnectionError: Connecting or declaring the group failed.
        """
        async with self._start_lock:
            if self.started:
                logger.info("Bus consumer already started", instance_id=self.instance_id)
                return False

            group = get_consumer_group(self._exchange, self.instance_id)
            logger.info(
                "Connecting to message bus",
                url=mask_url(self._url),
                exchange=self._exchange,
                group=group,
            )

            connection = self._connection_factory(self._url)
            channel = BusChannel(
                connection,
                exchange=self._exchange,
                group=group,
                consumer=self.instance_id,
                dead_letter_stream=get_dead_letter_stream(self._exchange),
                max_deliveries=self._max_deliveries,
            )
            try:
                await connection.ping()
                await channel.declare()
            except (RedisError, OSError) as e:
                logger.error(
                    "Bus consumer initialization failed",
                    url=mask_url(self._url),
                    error=str(e),
                )
                await self._discard_connection(connection)
                raise BusConnectionError(
                    f"Cannot start bus consumer: {e}",
                    url=mask_url(self._url),
                ) from e

            self.connection = connection
            self.channel = channel
            self._stopping = False
            self._reader_task = asyncio.create_task(
                self._consume_loop(), name="bus_consumer"
            )
            self.started = True

            logger.info(
                "Bus consumer started, waiting for messages",
                exchange=self._exchange,
                group=group,
                prefetch=self._prefetch,
            )
            return True

    async def _discard_connection(self, connection: redis.Redis) -> None:
        try:
            await connection.aclose()
        except (RedisError, OSError) as e:
            logger.debug("Error closing failed bus connection", error=str(e))

    async def _consume_loop(self) -> None:
        error_count = 0
        while not self._stopping:
            try:
                messages = await self.channel.read(
                    count=self._batch_count,
                    block_ms=self._block_ms,
                )
                error_count = 0
            except asyncio.CancelledError:
                logger.info("Bus consumer reader cancelled")
                raise
            except ResponseError as e:
                # Consumer group was deleted externally
                if "NOGROUP" in str(e):
                    logger.warning(
                        "Consumer group was deleted externally, recreating",
                        stream=self.channel.exchange,
                        group=self.channel.group,
                    )
                    try:
                        await self.channel.declare()
                        logger.info("Consumer group recreated successfully")
                        continue
                    except ResponseError as create_error:
                        logger.error(
                            "Failed to recreate consumer group",
                            error=str(create_error),
                        )
                error_count += 1
                await self._backoff(error_count, e)
                continue
            except Exception as e:
                error_count += 1
                await self._backoff(error_count, e)
                continue

            for message in messages:
                # Blocks the reader once bus_prefetch messages are in flight
                await self._slots.acquire()
                task = asyncio.create_task(
                    self._deliver(message),
                    name=f"bus_message_{message.message_id}",
                )
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)

    async def _backoff(self, error_count: int, error: Exception) -> None:
        delay = _calculate_error_backoff(error_count)
        logger.error(
            "Error in bus consumer loop",
            error=str(error),
            delay=round(delay, 2),
            error_count=error_count,
        )
        await asyncio.sleep(delay)

    async def _deliver(self, message: BusMessage) -> None:
        """Run the pipeline for one message, then ack or requeue it."""
        message_id_var.set(message.message_id)
        try:
            logger.info(
                "Message received",
                msg_id=message.message_id,
                delivery_count=message.delivery_count,
            )
            try:
                await self._on_message(message.body)
            except Exception as e:
                logger.error(
                    "Failed to process message",
                    msg_id=message.message_id,
                    error=str(e),
                    exc_info=True,
                )
                await self._settle(message, ack=False)
            else:
                await self._settle(message, ack=True)
        finally:
            self._slots.release()

    async def _settle(self, message: BusMessage, ack: bool) -> None:
        channel = self.channel
        if channel is None:
            logger.warning(
                "Channel closed before message was settled",
                msg_id=message.message_id,
            )
            return
        try:
            if ack:
                await channel.ack(message)
                logger.debug("Message acknowledged", msg_id=message.message_id)
            else:
                await channel.nack(message, requeue=True)
        except (RedisError, OSError) as e:
            logger.error(
                "Failed to settle message",
                msg_id=message.message_id,
                ack=ack,
                error=str(e),
            )

    async def close(self) -> None:
        """
        Stop consuming and release the bus resources.

        Safe to call more than once and when start() never ran. Errors are
        logged, never raised.
        """
        self._stopping = True

        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        if self._in_flight:
            logger.info("Waiting for in-flight messages", count=len(self._in_flight))
            _done, pending = await asyncio.wait(
                set(self._in_flight), timeout=self._drain_timeout
            )
            if pending:
                logger.warning(
                    "In-flight messages still running at shutdown",
                    count=len(pending),
                    timeout=self._drain_timeout,
                )

        if self.channel is not None:
            try:
                await self.channel.close()
                logger.info("Bus channel closed", group=self.channel.group)
            except (RedisError, OSError) as e:
                logger.error("Error closing bus channel", error=str(e))
            self.channel = None

        if self.connection is not None:
            try:
                await self.connection.aclose()
                logger.info("Bus connection closed")
            except (RedisError, OSError) as e:
                logger.error("Error closing bus connection", error=str(e))
            self.connection = None

        self.started = False
