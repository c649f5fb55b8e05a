"""
Subscriber and publisher lookups.

Two collaborators the pipeline consumes through small protocols:
- SubscriberResolver: publisher id -> ids of users following it
- PublisherDirectory: publisher id -> publisher (for its display name)

The SQL implementations run blocking queries in a worker thread with a
timeout so a slow database cannot stall the event loop.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.db import SessionLocal, get_db_context
from shared.models import Follow, Influencer
from shared.utils.exceptions import ResolutionError

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Publisher:
    """A publisher as far as notifications are concerned."""

    publisher_id: int
    display_name: str


class SubscriberResolver(Protocol):
    async def resolve_subscribers(self, publisher_id: int) -> list[int]:
        """
        Current subscriber ids of a publisher (point-in-time snapshot).

        Raises:
            ResolutionError: Unknown publisher or lookup backend unavailable.
        """
        ...


class PublisherDirectory(Protocol):
    async def get_publisher(self, publisher_id: int) -> Publisher | None:
        """Publisher by id, or None if there is no such publisher."""
        ...


class SqlSubscriberResolver:
    """
    SubscriberResolver backed by the follow table.

    Usage:
        resolver = SqlSubscriberResolver()
        subscriber_ids = await resolver.resolve_subscribers(publisher_id)
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        timeout: float | None = None,
    ):
        """
        Args:
            session_factory: Session factory for the database.
            timeout: Seconds allowed for the lookup (default: settings.db_lookup_timeout).
        """
        self._session_factory = session_factory
        self._timeout = timeout if timeout is not None else settings.db_lookup_timeout

    async def resolve_subscribers(self, publisher_id: int) -> list[int]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._resolve_sync, publisher_id),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ResolutionError(
                publisher_id, f"lookup timed out after {self._timeout}s"
            ) from e
        except SQLAlchemyError as e:
            raise ResolutionError(publisher_id, f"database error: {e}") from e

    def _resolve_sync(self, publisher_id: int) -> list[int]:
        with get_db_context(self._session_factory) as db:
            if db.get(Influencer, publisher_id) is None:
                raise ResolutionError(publisher_id, "unknown publisher")

            follower_ids = db.scalars(
                select(Follow.follower_id)
                .where(Follow.influencer_id == publisher_id)
                .order_by(Follow.id)
            ).all()
            return list(follower_ids)


class SqlPublisherDirectory:
    """PublisherDirectory backed by the influencer and user tables."""

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        timeout: float | None = None,
    ):
        self._session_factory = session_factory
        self._timeout = timeout if timeout is not None else settings.db_lookup_timeout

    async def get_publisher(self, publisher_id: int) -> Publisher | None:
        return await asyncio.wait_for(
            asyncio.to_thread(self._get_publisher_sync, publisher_id),
            timeout=self._timeout,
        )

    def _get_publisher_sync(self, publisher_id: int) -> Publisher | None:
        with get_db_context(self._session_factory) as db:
            influencer = db.get(Influencer, publisher_id)
            if influencer is None:
                return None
            return Publisher(
                publisher_id=influencer.id,
                display_name=influencer.user.username,
            )
