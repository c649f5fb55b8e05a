"""
Tests for the session registry.

Tests verify:
- One handle per subscriber, newest wins
- Compare-and-remove does not evict a newer session
- Snapshots are immutable copies
"""

import threading

import pytest

from ws_gateway.components.connection.registry import SessionRegistry


class TestSessionRegistry:

    def test_missing_subscriber_is_none_not_error(self):
        registry = SessionRegistry()

        assert registry.get(1) is None
        assert 1 not in registry

    def test_set_replaces_previous_handle(self):
        registry = SessionRegistry()

        assert registry.set(1, "first") is None
        assert registry.set(1, "second") == "first"
        assert registry.get(1) == "second"
        assert len(registry) == 1

    def test_remove_without_handle(self):
        registry = SessionRegistry()
        registry.set(1, "s1")

        assert registry.remove(1) is True
        assert registry.remove(1) is False
        assert registry.get(1) is None

    def test_remove_of_replaced_handle_keeps_newer_session(self):
        registry = SessionRegistry()
        old, new = object(), object()
        registry.set(1, old)
        registry.set(1, new)

        assert registry.remove(1, old) is False
        assert registry.get(1) is new

        assert registry.remove(1, new) is True
        assert 1 not in registry

    def test_snapshot_is_immutable_copy(self):
        registry = SessionRegistry()
        registry.set(1, "s1")

        snapshot = registry.snapshot()
        registry.set(2, "s2")

        assert dict(snapshot) == {1: "s1"}
        with pytest.raises(TypeError):
            snapshot[3] = "s3"

    def test_concurrent_writers_from_threads(self):
        registry = SessionRegistry()

        def register(start: int):
            for subscriber_id in range(start, start + 100):
                registry.set(subscriber_id, f"s{subscriber_id}")

        threads = [threading.Thread(target=register, args=(i * 100,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 400
