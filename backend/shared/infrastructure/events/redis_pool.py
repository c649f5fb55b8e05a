"""
Redis Connection Pool Management.

Shared async pool used for publishing broadcasts and health checks. The bus
consumer opens its own dedicated connection (see ws_gateway.core.subscriber)
so that its blocking reads never hold a pooled connection.
"""

from __future__ import annotations

import asyncio
import threading

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.config.settings import settings, BUS_URL
from shared.config.logging import get_logger, mask_url

logger = get_logger(__name__)


# Global Redis connection pool singleton (async)
_redis_pool: redis.Redis | None = None
_redis_pool_lock: asyncio.Lock | None = None
_pool_lock_init = threading.Lock()


def _get_pool_lock() -> asyncio.Lock:
    """
    Get or create the pool lock (lazy initialization for event loop safety).

    Uses threading.Lock with double-check pattern to prevent race condition
    where multiple coroutines could create different asyncio.Lock instances.
    """
    global _redis_pool_lock
    if _redis_pool_lock is None:
        with _pool_lock_init:
            if _redis_pool_lock is None:
                _redis_pool_lock = asyncio.Lock()
    return _redis_pool_lock


async def get_redis_pool() -> redis.Redis:
    """Get or create the Redis connection pool singleton."""
    global _redis_pool

    # Fast path: pool already initialized
    if _redis_pool is not None:
        return _redis_pool

    async with _get_pool_lock():
        # Double-check after acquiring lock (another coroutine may have initialized)
        if _redis_pool is None:
            _redis_pool = redis.from_url(
                BUS_URL,
                max_connections=settings.bus_pool_max_connections,
                decode_responses=True,
                socket_connect_timeout=settings.bus_socket_timeout,
                socket_timeout=settings.bus_socket_timeout,
                health_check_interval=30,
            )
            logger.info(
                "Redis async pool initialized",
                url=mask_url(BUS_URL),
                max_connections=settings.bus_pool_max_connections,
            )
    return _redis_pool


async def close_redis_pool() -> None:
    """Close the pool on application shutdown."""
    global _redis_pool, _redis_pool_lock

    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
        logger.info("Redis async pool closed")
    _redis_pool_lock = None


async def check_redis_health(timeout: float = 3.0) -> dict[str, str]:
    """Ping the pool; never raises."""
    try:
        pool = await get_redis_pool()
        await asyncio.wait_for(pool.ping(), timeout=timeout)
        return {"status": "healthy"}
    except asyncio.TimeoutError:
        return {"status": "unhealthy", "error": f"ping timed out after {timeout}s"}
    except (RedisError, OSError) as e:
        return {"status": "unhealthy", "error": str(e)}
