from __future__ import annotations

import asyncio
import threading

import pytest

from chitchat.broadcast import Broadcaster


def test_publish_without_subscribers_is_dropped():
    bus = Broadcaster()
    assert bus.publish("nobody listens") == 0


def test_subscriber_sees_only_events_after_subscribing():
    async def scenario():
        bus = Broadcaster()
        bus.publish("before")
        sub = bus.subscribe()
        bus.publish("after")
        return await asyncio.wait_for(sub.get(), timeout=1), sub.pending

    event, pending = asyncio.run(scenario())
    assert event == "after"
    assert pending == 0


def test_events_arrive_in_publish_order():
    async def scenario():
        bus = Broadcaster()
        sub = bus.subscribe()
        for i in range(5):
            bus.publish(i)
        return [await asyncio.wait_for(sub.get(), timeout=1) for _ in range(5)]

    assert asyncio.run(scenario()) == [0, 1, 2, 3, 4]


def test_unsubscribe_stops_delivery_while_others_continue():
    async def scenario():
        bus = Broadcaster()
        keep = bus.subscribe()
        leave = bus.subscribe()
        assert bus.publish("first") == 2

        leave.close()
        assert bus.publish("second") == 1

        got_keep = [await asyncio.wait_for(keep.get(), timeout=1) for _ in range(2)]
        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(leave.get(), timeout=1)
        return got_keep, bus.subscriber_count

    got_keep, count = asyncio.run(scenario())
    assert got_keep == ["first", "second"]
    assert count == 1


def test_close_ends_async_iteration():
    async def scenario():
        bus = Broadcaster()
        received = []

        async def consume(sub):
            async for event in sub:
                received.append(event)

        sub = bus.subscribe()
        task = asyncio.create_task(consume(sub))
        bus.publish("a")
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        sub.close()
        await asyncio.wait_for(task, timeout=1)
        return received

    assert asyncio.run(scenario()) == ["a"]


def test_close_is_idempotent_and_context_manager_closes():
    bus = Broadcaster()
    with bus.subscribe() as sub:
        assert bus.subscriber_count == 1
    assert sub.closed
    sub.close()
    assert bus.subscriber_count == 0


def test_full_queue_drops_events_for_that_subscriber_only():
    async def scenario():
        bus = Broadcaster(queue_size=2)
        slow = bus.subscribe()
        fast = bus.subscribe()

        bus.publish(1)
        assert await fast.get() == 1
        bus.publish(2)
        assert await fast.get() == 2
        # slow already holds 2 events; the third is dropped for it only.
        assert bus.publish(3) == 1
        assert await fast.get() == 3

        return [await slow.get(), await slow.get(), slow.pending]

    assert asyncio.run(scenario()) == [1, 2, 0]


def test_publish_from_another_thread_reaches_loop_subscriber():
    async def scenario():
        bus = Broadcaster()
        sub = bus.subscribe()
        worker = threading.Thread(target=bus.publish, args=("from thread",))
        worker.start()
        worker.join()
        return await asyncio.wait_for(sub.get(), timeout=1)

    assert asyncio.run(scenario()) == "from thread"


def test_registry_changes_during_publish_are_tolerated():
    async def scenario():
        bus = Broadcaster()
        a = bus.subscribe()
        b = bus.subscribe()
        joined = []
        original = a._deliver

        def deliver(event):
            # Mutate the registry while the publish is still iterating.
            b.close()
            joined.append(bus.subscribe())
            return original(event)

        a._deliver = deliver
        bus.publish("event")

        got = await asyncio.wait_for(a.get(), timeout=1)
        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(b.get(), timeout=1)
        return got, joined[0].pending, bus.subscriber_count

    assert asyncio.run(scenario()) == ("event", 0, 2)


def test_invalid_queue_size():
    with pytest.raises(ValueError):
        Broadcaster(queue_size=0)


def test_publish_after_subscriber_loop_closed_does_not_raise():
    async def scenario():
        bus = Broadcaster()
        return bus, bus.subscribe()

    # asyncio.run closes the loop the subscription was made on.
    bus, sub = asyncio.run(scenario())
    assert bus.publish("late") == 0
    assert sub.pending == 0


def test_publish_survives_loop_closing_mid_handoff():
    class ClosingLoop:
        def is_closed(self):
            return False

        def call_soon_threadsafe(self, *args):
            raise RuntimeError("Event loop is closed")

    bus = Broadcaster()
    sub = bus.subscribe()
    healthy = bus.subscribe()
    sub._loop = ClosingLoop()
    assert bus.publish("event") == 1
    assert healthy.pending == 1
