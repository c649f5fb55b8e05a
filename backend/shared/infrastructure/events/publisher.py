"""
Broadcast Publishing.

Appends broadcast events to the notifications stream. Every consumer group
bound to the stream (one per running gateway) receives its own copy.
"""

from __future__ import annotations

import asyncio
import random

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.redis.constants import STREAM_DATA_FIELD
from .event_schema import BroadcastEvent

logger = get_logger(__name__)

PUBLISH_MAX_RETRIES = 3
PUBLISH_RETRY_DELAY = 0.1  # Base delay in seconds


def calculate_retry_delay_with_jitter(attempt: int, base_delay: float) -> float:
    """Exponential delay for the given attempt with up to 50% jitter."""
    delay = base_delay * (2 ** attempt)
    return delay + delay * 0.5 * random.random()


async def publish_broadcast(
    redis_client: redis.Redis,
    event: BroadcastEvent,
    exchange: str | None = None,
    maxlen: int | None = None,
) -> str:
    """
    Publish a broadcast event to the notifications stream.

    Args:
        redis_client: Async Redis client.
        event: Event to publish.
        exchange: Stream key (default: settings.bus_exchange).
        maxlen: Approximate stream length cap (default: settings.bus_stream_maxlen).

    Returns:
        Id of the stream entry.

    Raises:
        redis.exceptions.RedisError: If all retries fail.
    """
    exchange = exchange or settings.bus_exchange
    maxlen = maxlen if maxlen is not None else settings.bus_stream_maxlen
    body = event.to_json()

    last_error: Exception | None = None
    for attempt in range(PUBLISH_MAX_RETRIES):
        try:
            message_id = await redis_client.xadd(
                exchange,
                {STREAM_DATA_FIELD: body},
                maxlen=maxlen,
                approximate=True,
            )
            logger.info(
                "Broadcast published",
                exchange=exchange,
                msg_id=message_id,
                feed_id=event.content_id,
                influencer_id=event.publisher_id,
            )
            return message_id
        except (RedisConnectionError, RedisTimeoutError) as e:
            last_error = e
            if attempt < PUBLISH_MAX_RETRIES - 1:
                delay = calculate_retry_delay_with_jitter(attempt, PUBLISH_RETRY_DELAY)
                logger.warning(
                    "Broadcast publish failed, retrying",
                    exchange=exchange,
                    attempt=attempt + 1,
                    max_retries=PUBLISH_MAX_RETRIES,
                    delay_seconds=round(delay, 2),
                    error=str(e),
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    "Broadcast publish failed after all retries",
                    exchange=exchange,
                    error=str(e),
                )

    raise last_error  # type: ignore[misc]
