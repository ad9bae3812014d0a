"""Fan-out of committed message events to live subscribers.

Each subscriber owns a bounded :class:`asyncio.Queue`. Publishing never
waits: a full queue loses that one event, other subscribers are unaffected.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, List, Optional, Set

logger = logging.getLogger("chitchat.broadcast")

DEFAULT_QUEUE_SIZE = 1000

# Wakes a reader blocked on an empty queue when the subscription closes.
_CLOSED = object()


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscription:
    """Handle returned by :meth:`Broadcaster.subscribe`.

    Iterate it with ``async for`` to receive every event published after the
    subscription was made, in publish order. The sequence is infinite until
    :meth:`close` is called (also on leaving a ``with`` / ``async with``
    block).
    """

    def __init__(self, broadcaster: "Broadcaster", queue_size: int) -> None:
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size + 1)
        self._capacity = queue_size
        self._loop = _running_loop()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of events waiting to be read."""
        return self._queue.qsize()

    # --------- producer side ----------
    def _deliver(self, event: Any) -> bool:
        """Hand ``event`` over from whatever thread the publisher runs on."""
        loop = self._loop
        if loop is None or loop is _running_loop():
            return self._offer(event)
        # Counted as handed over; the subscriber loop may still drop it when full.
        try:
            loop.call_soon_threadsafe(self._offer, event)
        except RuntimeError:
            # Subscriber loop already closed.
            return False
        return True

    def _offer(self, event: Any) -> bool:
        if self._closed:
            return False
        # One slot stays reserved for the close marker.
        if self._queue.qsize() >= self._capacity:
            logger.warning("subscriber queue full (%d), dropping event", self._capacity)
            return False
        self._queue.put_nowait(event)
        return True

    # --------- consumer side ----------
    async def get(self) -> Any:
        """Wait for the next event. Raises :class:`StopAsyncIteration` once closed."""
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        return await self.get()

    def close(self) -> None:
        """Stop delivery and drop anything still queued. Idempotent."""
        if self._closed:
            return
        self._broadcaster.unsubscribe(self)
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()


class Broadcaster:
    """Registry of subscriptions with a non-blocking :meth:`publish`.

    Safe to publish from any thread. The registry is copied under a lock
    before delivery, so subscribing or unsubscribing during a publish is
    fine.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        if queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {queue_size}")
        self.queue_size = queue_size
        self._subscribers: Set[Subscription] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self, self.queue_size)
        with self._lock:
            self._subscribers.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(sub)

    def publish(self, event: Any) -> int:
        """Deliver ``event`` to everyone subscribed right now.

        Returns the number of subscribers it was handed to. Zero subscribers
        is not an error: the event is simply dropped.
        """
        with self._lock:
            targets: List[Subscription] = list(self._subscribers)
        count = 0
        for sub in targets:
            if sub._deliver(event):
                count += 1
        noun = "client" if count == 1 else "clients"
        logger.info("message sent to %d %s", count, noun)
        return count


__all__ = ["Broadcaster", "Subscription", "DEFAULT_QUEUE_SIZE"]
