"""Unit tests for the EventBus."""
import asyncio

import pytest

from core.events import ChangeKind, EventBus, StateChange


class TestEventBus:

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        bus = EventBus()
        assert bus.publish(StateChange(ChangeKind.AUTH, "login")) == 0

    @pytest.mark.asyncio
    async def test_every_subscriber_receives(self):
        bus = EventBus()
        first, second = bus.subscribe(), bus.subscribe()

        delivered = bus.publish(StateChange(ChangeKind.MODEL, "m1"))

        assert delivered == 2
        assert first.get_nowait().detail == "m1"
        assert second.get_nowait().detail == "m1"

    @pytest.mark.asyncio
    async def test_late_subscriber_misses_earlier_changes(self):
        bus = EventBus()
        bus.publish(StateChange(ChangeKind.AUTH, "login"))

        late = bus.subscribe()

        assert late.get_nowait() is None

    @pytest.mark.asyncio
    async def test_full_queue_drops_oldest(self):
        bus = EventBus(capacity=2)
        sub = bus.subscribe()

        for detail in ("a", "b", "c"):
            bus.publish(StateChange(ChangeKind.MODEL, detail))

        assert sub.dropped == 1
        assert [sub.get_nowait().detail, sub.get_nowait().detail] == ["b", "c"]
        assert sub.get_nowait() is None

    @pytest.mark.asyncio
    async def test_slow_subscriber_does_not_block_publisher(self):
        bus = EventBus(capacity=1)
        bus.subscribe()

        for i in range(100):
            bus.publish(StateChange(ChangeKind.MODEL, str(i)))

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self):
        bus = EventBus()
        with bus.subscribe():
            assert bus.subscriber_count == 1
        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_async_iteration(self):
        bus = EventBus()
        sub = bus.subscribe()
        received = []

        async def consume():
            async for change in sub:
                received.append(change.detail)
                if len(received) == 2:
                    break

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        bus.publish(StateChange(ChangeKind.AUTH, "login"))
        bus.publish(StateChange(ChangeKind.AUTH, "logout"))
        await asyncio.wait_for(consumer, timeout=1)

        assert received == ["login", "logout"]

    @pytest.mark.asyncio
    async def test_close_ends_waiting_iteration(self):
        bus = EventBus()
        sub = bus.subscribe()
        received = []

        async def consume():
            async for change in sub:
                received.append(change.detail)

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        bus.publish(StateChange(ChangeKind.MODEL, "m1"))
        await asyncio.sleep(0)
        sub.close()
        await asyncio.wait_for(consumer, timeout=1)

        assert received == ["m1"]

    @pytest.mark.asyncio
    async def test_close_wakes_get(self):
        bus = EventBus()
        sub = bus.subscribe()

        waiter = asyncio.create_task(sub.get())
        await asyncio.sleep(0)
        sub.close()

        assert await asyncio.wait_for(waiter, timeout=1) is None
        assert await sub.get() is None
        assert sub.get_nowait() is None
