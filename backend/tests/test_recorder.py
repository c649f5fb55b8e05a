"""
Tests for the delivery recorder and the SQL notification store.

Tests verify:
- One notification row per subscriber
- Test broadcasts (persistence disabled) are skipped
- Store failures are reported, never raised
"""

import pytest
from sqlalchemy import select

from shared.models import Notification
from ws_gateway.core.notifications.recorder import (
    DeliveryRecorder,
    RecordStatus,
    SqlNotificationStore,
)
from tests.conftest import FakeStore, TestingSessionLocal


class TestSqlNotificationStore:

    @pytest.mark.asyncio
    async def test_writes_one_row_per_subscriber(self, db_session):
        store = SqlNotificationStore(session_factory=TestingSessionLocal, persist_enabled=True)

        assert await store.save([1, 2, 3], 42) is True

        rows = db_session.scalars(select(Notification).order_by(Notification.user_id)).all()
        assert [(row.user_id, row.feed_id, row.is_read) for row in rows] == [
            (1, 42, False),
            (2, 42, False),
            (3, 42, False),
        ]

    @pytest.mark.asyncio
    async def test_redelivery_writes_rows_again(self, db_session):
        store = SqlNotificationStore(session_factory=TestingSessionLocal, persist_enabled=True)

        await store.save([1], 42)
        await store.save([1], 42)

        rows = db_session.scalars(select(Notification)).all()
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_persistence_disabled_skips_write(self, db_session):
        store = SqlNotificationStore(session_factory=TestingSessionLocal, persist_enabled=False)

        assert await store.save([1, 2], 42) is False
        assert db_session.scalars(select(Notification)).all() == []

    @pytest.mark.asyncio
    async def test_empty_subscriber_list_is_a_noop(self, db_session):
        store = SqlNotificationStore(session_factory=TestingSessionLocal, persist_enabled=True)

        assert await store.save([], 42) is True
        assert db_session.scalars(select(Notification)).all() == []


class TestDeliveryRecorder:

    @pytest.mark.asyncio
    async def test_persisted_outcome_counts_subscribers(self):
        store = FakeStore(result=True)

        outcome = await DeliveryRecorder(store).record([1, 2, 3], 42)

        assert outcome.status == RecordStatus.PERSISTED
        assert outcome.count == 3
        assert store.saved == [([1, 2, 3], 42)]

    @pytest.mark.asyncio
    async def test_falsy_store_result_is_skipped(self):
        outcome = await DeliveryRecorder(FakeStore(result=False)).record([1], 42)

        assert outcome.status == RecordStatus.SKIPPED
        assert outcome.count == 0

    @pytest.mark.asyncio
    async def test_store_failure_is_reported_not_raised(self):
        store = FakeStore(error=RuntimeError("disk full"))

        outcome = await DeliveryRecorder(store).record([1, 2], 42)

        assert outcome.status == RecordStatus.FAILED
        assert outcome.error == "disk full"
