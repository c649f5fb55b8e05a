"""
Tests for the push dispatcher.

Tests verify:
- Only subscribers with a live session receive the event
- One failing session does not stop the others
- Redispatching the same event sends it again (no deduplication)
- Display name falls back to "Unknown"
"""

import asyncio

import pytest

from shared.infrastructure.events import BroadcastEvent
from ws_gateway.components.core.constants import (
    EVENT_NEW_NOTIFICATION,
    UNKNOWN_PUBLISHER_NAME,
)
from ws_gateway.core.notifications.dispatcher import PushDispatcher
from tests.conftest import FakeDirectory, FakeHandle


EVENT = BroadcastEvent(publisher_id=7, content_id=42, text="hi")


class TestPushDispatcher:

    @pytest.mark.asyncio
    async def test_emits_only_to_connected_subscribers(self, registry, transport, directory):
        s1, s3 = FakeHandle("s1"), FakeHandle("s3")
        registry.set(1, s1)
        registry.set(3, s3)
        dispatcher = PushDispatcher(registry, transport, directory)

        result = await dispatcher.dispatch(EVENT, [1, 2, 3])

        assert result.sent == 2
        assert result.not_connected == 1
        assert result.recipients == [1, 3]
        expected = {
            "feedId": 42,
            "influencerId": 7,
            "influencerName": "alice",
            "message": "Post 42 by alice",
        }
        assert transport.sent == [
            (s1, EVENT_NEW_NOTIFICATION, expected),
            (s3, EVENT_NEW_NOTIFICATION, expected),
        ]

    @pytest.mark.asyncio
    async def test_failing_emit_does_not_block_others(self, registry, transport, directory):
        handles = {i: FakeHandle(f"s{i}") for i in (1, 2, 3)}
        for subscriber_id, handle in handles.items():
            registry.set(subscriber_id, handle)
        transport.failing[handles[2]] = ConnectionError("socket closed")
        dispatcher = PushDispatcher(registry, transport, directory)

        result = await dispatcher.dispatch(EVENT, [1, 2, 3])

        assert result.sent == 2
        assert result.failed == 1
        assert result.recipients == [1, 3]
        assert "socket closed" in result.errors[0]

    @pytest.mark.asyncio
    async def test_stale_handle_is_skipped(self, registry, transport, directory):
        dead = FakeHandle("dead")
        registry.set(1, dead)
        transport.dead.add(dead)
        dispatcher = PushDispatcher(registry, transport, directory)

        result = await dispatcher.dispatch(EVENT, [1])

        assert result.stale == 1
        assert result.sent == 0
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_slow_emit_times_out(self, registry, directory):
        class SlowTransport:
            def is_live(self, handle):
                return True

            async def emit(self, handle, event, payload):
                await asyncio.sleep(1)

        registry.set(1, FakeHandle("s1"))
        dispatcher = PushDispatcher(registry, SlowTransport(), directory, send_timeout=0.05)

        result = await dispatcher.dispatch(EVENT, [1])

        assert result.failed == 1
        assert result.sent == 0

    @pytest.mark.asyncio
    async def test_redispatch_sends_duplicates(self, registry, transport, directory):
        s1 = FakeHandle("s1")
        registry.set(1, s1)
        dispatcher = PushDispatcher(registry, transport, directory)

        await dispatcher.dispatch(EVENT, [1])
        await dispatcher.dispatch(EVENT, [1])

        assert len(transport.sent_to(s1)) == 2

    @pytest.mark.asyncio
    async def test_no_transport_sends_nothing(self, registry, directory):
        registry.set(1, FakeHandle("s1"))
        dispatcher = PushDispatcher(registry, None, directory)

        result = await dispatcher.dispatch(EVENT, [1, 2])

        assert result.sent == 0
        assert result.not_connected == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "publishers",
        [
            FakeDirectory({}),
            FakeDirectory({7: ""}),
            FakeDirectory(error=RuntimeError("directory down")),
        ],
    )
    async def test_display_name_falls_back(self, registry, transport, publishers):
        s1 = FakeHandle("s1")
        registry.set(1, s1)
        dispatcher = PushDispatcher(registry, transport, publishers)

        await dispatcher.dispatch(EVENT, [1])

        payload = transport.sent_to(s1)[0]
        assert payload["influencerName"] == UNKNOWN_PUBLISHER_NAME
        assert payload["message"] == f"Post 42 by {UNKNOWN_PUBLISHER_NAME}"

    @pytest.mark.asyncio
    async def test_explicit_display_name_skips_lookup(self, registry, transport):
        s1 = FakeHandle("s1")
        registry.set(1, s1)
        dispatcher = PushDispatcher(registry, transport, FakeDirectory(error=AssertionError("called")))

        await dispatcher.dispatch(EVENT, [1], publisher_display_name="alice")

        assert transport.sent_to(s1)[0]["influencerName"] == "alice"
