"""
Tests for broadcast publishing onto the notifications stream.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shared.infrastructure.events import BroadcastEvent, publish_broadcast


EVENT = BroadcastEvent(publisher_id=7, content_id=42, text="hi")


class TestPublishBroadcast:

    @pytest.mark.asyncio
    async def test_appends_wire_body_to_stream(self):
        redis = AsyncMock()
        redis.xadd.return_value = "1700000000000-0"

        message_id = await publish_broadcast(redis, EVENT, exchange="notifications_exchange", maxlen=500)

        assert message_id == "1700000000000-0"
        args, kwargs = redis.xadd.call_args
        assert args[0] == "notifications_exchange"
        assert json.loads(args[1]["data"]) == {"feedId": 42, "influencerId": 7, "message": "hi"}
        assert kwargs == {"maxlen": 500, "approximate": True}

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        redis = AsyncMock()
        redis.xadd.side_effect = [RedisConnectionError("reset"), "1-0"]

        with patch("shared.infrastructure.events.publisher.asyncio.sleep", new=AsyncMock()):
            assert await publish_broadcast(redis, EVENT) == "1-0"

        assert redis.xadd.await_count == 2

    @pytest.mark.asyncio
    async def test_raises_after_all_retries(self):
        redis = AsyncMock()
        redis.xadd.side_effect = RedisConnectionError("down")

        with patch("shared.infrastructure.events.publisher.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(RedisConnectionError):
                await publish_broadcast(redis, EVENT)

        assert redis.xadd.await_count == 3
