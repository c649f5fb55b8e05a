"""
Event System for the notifications bus (Redis Streams).

This package provides:
- Broadcast event schema and decoding (event_schema.py)
- Redis connection pool management (redis_pool.py)
- Broadcast publishing with retry (publisher.py)
"""

from .event_schema import BroadcastEvent
from .redis_pool import (
    get_redis_pool,
    close_redis_pool,
    check_redis_health,
)
from .publisher import (
    publish_broadcast,
    calculate_retry_delay_with_jitter,
)

__all__ = [
    "BroadcastEvent",
    "get_redis_pool",
    "close_redis_pool",
    "check_redis_health",
    "publish_broadcast",
    "calculate_retry_delay_with_jitter",
]
