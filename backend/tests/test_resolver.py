"""
Tests for the SQL subscriber resolver and publisher directory (SQLite).
"""

import time
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from shared.utils.exceptions import ResolutionError
from ws_gateway.core.notifications.resolver import (
    Publisher,
    SqlPublisherDirectory,
    SqlSubscriberResolver,
)
from tests.conftest import TestingSessionLocal


class TestSqlSubscriberResolver:

    @pytest.mark.asyncio
    async def test_resolves_followers_in_follow_order(self, seed_follows):
        resolver = SqlSubscriberResolver(session_factory=TestingSessionLocal)

        assert await resolver.resolve_subscribers(7) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_publisher_without_followers_resolves_empty(self, seed_follows):
        resolver = SqlSubscriberResolver(session_factory=TestingSessionLocal)

        assert await resolver.resolve_subscribers(8) == []

    @pytest.mark.asyncio
    async def test_unknown_publisher_raises(self, seed_follows):
        resolver = SqlSubscriberResolver(session_factory=TestingSessionLocal)

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve_subscribers(999)

        assert exc_info.value.publisher_id == 999
        assert exc_info.value.reason == "unknown publisher"

    @pytest.mark.asyncio
    async def test_database_error_becomes_resolution_error(self):
        resolver = SqlSubscriberResolver(session_factory=TestingSessionLocal)
        db_down = OperationalError("SELECT 1", {}, Exception("connection refused"))

        with patch.object(SqlSubscriberResolver, "_resolve_sync", side_effect=db_down):
            with pytest.raises(ResolutionError) as exc_info:
                await resolver.resolve_subscribers(7)

        assert "database error" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_slow_lookup_times_out(self):
        resolver = SqlSubscriberResolver(session_factory=TestingSessionLocal, timeout=0.05)

        with patch.object(
            SqlSubscriberResolver,
            "_resolve_sync",
            side_effect=lambda publisher_id: time.sleep(0.3),
        ):
            with pytest.raises(ResolutionError) as exc_info:
                await resolver.resolve_subscribers(7)

        assert "timed out" in exc_info.value.reason


class TestSqlPublisherDirectory:

    @pytest.mark.asyncio
    async def test_display_name_is_username(self, seed_follows):
        directory = SqlPublisherDirectory(session_factory=TestingSessionLocal)

        assert await directory.get_publisher(7) == Publisher(publisher_id=7, display_name="alice")

    @pytest.mark.asyncio
    async def test_unknown_publisher_is_none(self, seed_follows):
        directory = SqlPublisherDirectory(session_factory=TestingSessionLocal)

        assert await directory.get_publisher(999) is None
