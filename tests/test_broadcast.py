"""
Tests for the Broadcaster: fan-out, ordering, unregistration, overflow and
shutdown.
"""

from __future__ import annotations

import asyncio

import pytest
from structlog.testing import capture_logs

from tt.core.broadcast import Broadcaster, Listener, ListenerClosed
from tt.core.exceptions import BroadcasterClosed


async def _drain(broadcaster: Broadcaster) -> None:
    """Let the processing task deliver everything published so far."""
    for _ in range(5):
        await asyncio.sleep(0)


async def _get(listener: Listener, timeout: float = 1.0):
    return await listener.get(timeout=timeout)


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


class TestFanOut:

    async def test_two_listeners_see_the_same_events_in_order(self, broadcaster):
        l1 = broadcaster.register()
        l2 = broadcaster.register()

        broadcaster.publish("one")
        broadcaster.publish("two")

        assert [await _get(l1), await _get(l1)] == ["one", "two"]
        assert [await _get(l2), await _get(l2)] == ["one", "two"]

    async def test_unregistered_listener_sees_nothing_further(self, broadcaster):
        l1 = broadcaster.register()
        l2 = broadcaster.register()

        broadcaster.publish("one")
        assert await _get(l1) == "one"
        assert await _get(l2) == "one"

        broadcaster.unregister(l2)
        broadcaster.publish("two")

        assert await _get(l1) == "two"
        with pytest.raises(ListenerClosed):
            await _get(l2)
        assert l2.closed

    async def test_publish_with_no_listeners(self, broadcaster):
        broadcaster.publish("nobody")
        await _drain(broadcaster)
        assert broadcaster.listener_count == 0

    async def test_late_listener_misses_earlier_events(self, broadcaster):
        broadcaster.publish("early")
        listener = broadcaster.register()
        broadcaster.publish("late")
        assert await _get(listener) == "late"

    async def test_unregister_before_delivery(self, broadcaster):
        listener = broadcaster.register()
        broadcaster.publish("queued")
        broadcaster.unregister(listener)
        await _drain(broadcaster)

        with pytest.raises(ListenerClosed):
            await _get(listener)

    async def test_get_times_out(self, broadcaster):
        listener = broadcaster.register()
        assert await listener.get(timeout=0.01) is None

    async def test_iterate_until_closed(self, broadcaster):
        listener = broadcaster.register()
        broadcaster.publish("a")
        broadcaster.publish("b")
        await _drain(broadcaster)
        broadcaster.unregister(listener)

        assert [event async for event in listener] == ["a", "b"]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:

    async def test_unregister_is_idempotent(self, broadcaster):
        listener = broadcaster.register()
        broadcaster.unregister(listener)
        broadcaster.unregister(listener)
        assert broadcaster.listener_count == 0

    async def test_unregister_keeps_the_others(self, broadcaster):
        listeners = [broadcaster.register() for _ in range(4)]
        broadcaster.unregister(listeners[1])
        assert broadcaster.listener_count == 3

        broadcaster.publish("x")
        for listener in (listeners[0], listeners[2], listeners[3]):
            assert await _get(listener) == "x"

    async def test_unknown_listener_is_ignored(self, broadcaster):
        broadcaster.register()
        broadcaster.unregister(Listener())
        assert broadcaster.listener_count == 1


# ---------------------------------------------------------------------------
# Overflow
# ---------------------------------------------------------------------------


class TestOverflow:

    async def test_slow_listener_drops_oldest(self, broadcaster):
        slow = broadcaster.register()
        for i in range(6):
            broadcaster.publish(i)
        await _drain(broadcaster)

        # buffer_size is 4 in the fixture
        assert slow.dropped == 2
        assert [await _get(slow) for _ in range(4)] == [2, 3, 4, 5]

    async def test_slow_listener_does_not_affect_others(self, broadcaster):
        slow = broadcaster.register()
        fast = broadcaster.register()

        received = []
        for i in range(6):
            broadcaster.publish(i)
            received.append(await _get(fast))

        assert received == list(range(6))
        assert fast.dropped == 0
        assert slow.dropped == 2

    async def test_closing_a_full_listener_counts_and_logs_the_eviction(self, broadcaster):
        full = broadcaster.register()
        for i in range(4):
            broadcaster.publish(i)
        await _drain(broadcaster)

        with capture_logs() as logs:
            broadcaster.unregister(full)

        assert full.dropped == 1
        [entry] = [e for e in logs if e["event"] == "broadcast.dropped_oldest"]
        assert entry["log_level"] == "warning"
        assert entry["closing"] is True
        assert entry["dropped"] == 1
        assert [event async for event in full] == [1, 2, 3]

    async def test_closing_with_room_drops_nothing(self, broadcaster):
        listener = broadcaster.register()
        broadcaster.publish(0)
        await _drain(broadcaster)

        with capture_logs() as logs:
            broadcaster.unregister(listener)

        assert listener.dropped == 0
        assert not [e for e in logs if e["event"] == "broadcast.dropped_oldest"]
        assert [event async for event in listener] == [0]


# ---------------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------------


class TestShutdown:

    async def test_shutdown_delivers_queued_then_closes(self):
        b = Broadcaster(buffer_size=4)
        b.start()
        listener = b.register()
        b.publish("last")

        await b.shutdown()

        assert await _get(listener) == "last"
        with pytest.raises(ListenerClosed):
            await _get(listener)
        assert b.listener_count == 0

    async def test_publish_after_shutdown(self):
        b = Broadcaster()
        b.start()
        await b.shutdown()

        with pytest.raises(BroadcasterClosed):
            b.publish("late")
        with pytest.raises(BroadcasterClosed):
            b.register()

    async def test_shutdown_twice(self):
        b = Broadcaster()
        b.start()
        await b.shutdown()
        await b.shutdown()
        assert b.closed

    async def test_shutdown_without_start(self):
        b = Broadcaster()
        listener = b.register()
        await b.shutdown()
        with pytest.raises(ListenerClosed):
            await _get(listener)


async def test_overflow_is_logged(broadcaster):
    broadcaster.register()
    with capture_logs() as logs:
        for i in range(5):
            broadcaster.publish(i)
        await _drain(broadcaster)

    [entry] = [e for e in logs if e["event"] == "broadcast.dropped_oldest"]
    assert entry["log_level"] == "warning"
    assert entry["dropped"] == 1
