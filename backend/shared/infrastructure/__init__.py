"""
Infrastructure module: Database and Redis/events.

Provides:
- Database sessions and transactions (db.py)
- Redis connection pool and broadcast publishing (events/)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db_context,
    safe_commit,
)
from shared.infrastructure.events import (
    get_redis_pool,
    close_redis_pool,
    publish_broadcast,
)

__all__ = [
    # db
    "engine",
    "SessionLocal",
    "get_db_context",
    "safe_commit",
    # events (Redis)
    "get_redis_pool",
    "close_redis_pool",
    "publish_broadcast",
]
