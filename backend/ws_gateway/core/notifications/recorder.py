"""
Delivery Recorder.

Persists one notification record per (subscriber, feed item). Recording is
advisory: a failed write is logged and reported, never raised, so live
delivery still happens. A missing row can be rebuilt later; a missed live
nudge cannot.

Redelivery of the same broadcast writes the rows again. Rows are not
deduplicated here.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence

from sqlalchemy.orm import sessionmaker

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.db import SessionLocal, get_db_context, safe_commit
from shared.models import Notification

logger = get_logger(__name__)


class RecordStatus(str, Enum):
    """Outcome of recording a broadcast."""
    PERSISTED = "PERSISTED"  # Rows written
    SKIPPED = "SKIPPED"      # Intentionally not written (test broadcast)
    FAILED = "FAILED"        # Store raised; logged and ignored


@dataclass(frozen=True, slots=True)
class RecordOutcome:
    status: RecordStatus
    count: int = 0
    error: str | None = None

    @classmethod
    def persisted(cls, count: int) -> RecordOutcome:
        return cls(RecordStatus.PERSISTED, count=count)

    @classmethod
    def skipped(cls) -> RecordOutcome:
        return cls(RecordStatus.SKIPPED)

    @classmethod
    def failed(cls, error: str) -> RecordOutcome:
        return cls(RecordStatus.FAILED, error=error)


class NotificationStore(Protocol):
    async def save(self, subscriber_ids: Sequence[int], content_id: int) -> bool:
        """
        Persist notification rows.

        Returns:
            True if the rows were written, False if intentionally skipped.
        """
        ...


class SqlNotificationStore:
    """
    NotificationStore writing to the notification table.

    With persist_enabled off every save is skipped; this is how test
    broadcasts are signalled.
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        persist_enabled: bool | None = None,
        timeout: float | None = None,
    ):
        self._session_factory = session_factory
        self._persist_enabled = (
            persist_enabled
            if persist_enabled is not None
            else settings.notifications_persist_enabled
        )
        self._timeout = timeout if timeout is not None else settings.db_lookup_timeout

    async def save(self, subscriber_ids: Sequence[int], content_id: int) -> bool:
        if not self._persist_enabled:
            return False
        if not subscriber_ids:
            return True
        await asyncio.wait_for(
            asyncio.to_thread(self._save_sync, list(subscriber_ids), content_id),
            timeout=self._timeout,
        )
        return True

    def _save_sync(self, subscriber_ids: list[int], content_id: int) -> None:
        with get_db_context(self._session_factory) as db:
            db.add_all(
                Notification(user_id=subscriber_id, feed_id=content_id)
                for subscriber_id in subscriber_ids
            )
            safe_commit(db)


class DeliveryRecorder:
    """
    Records that subscribers were notified of a feed item.

    Usage:
        recorder = DeliveryRecorder(SqlNotificationStore())
        outcome = await recorder.record([1, 2, 3], content_id=42)
    """

    def __init__(self, store: NotificationStore):
        self._store = store

    async def record(
        self,
        subscribers: Sequence[int],
        content_id: int,
    ) -> RecordOutcome:
        """
        Persist one record per subscriber. Never raises on store failure.
        """
        try:
            saved = await self._store.save(subscribers, content_id)
        except Exception as e:
            logger.error(
                "Failed to save notifications",
                feed_id=content_id,
                subscriber_count=len(subscribers),
                error=str(e),
                exc_info=True,
            )
            return RecordOutcome.failed(str(e))

        if saved:
            logger.info(
                "Notifications saved",
                feed_id=content_id,
                count=len(subscribers),
            )
            return RecordOutcome.persisted(len(subscribers))

        logger.info(
            "Test broadcast, notifications not saved",
            feed_id=content_id,
        )
        return RecordOutcome.skipped()
