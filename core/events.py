"""
Best-effort broadcast of state changes.

Components publish StateChange notifications (credentials changed, active
model changed); display code subscribes. Publishing never blocks: each
subscriber owns a bounded queue and, when it is full, the oldest pending
change is dropped to make room. Subscribers only see changes published after
they attached. This is a current-state channel, not an event log.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Set

from loguru import logger


class ChangeKind(str, Enum):
    AUTH = "auth"
    MODEL = "model"


@dataclass(frozen=True)
class StateChange:
    """A state transition. `detail` carries e.g. the new model id."""
    kind: ChangeKind
    detail: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


class Subscription:
    """
    One subscriber's view of the bus.

    Usable as an async iterator and as a context manager that unsubscribes on
    exit. Closing wakes a consumer blocked in get() or `async for`: get()
    returns None and iteration stops once pending changes are read.
    """

    def __init__(self, bus: "EventBus", capacity: int):
        self._bus = bus
        # one extra slot for the close marker
        self._queue: "asyncio.Queue[Optional[StateChange]]" = asyncio.Queue(maxsize=capacity + 1)
        self._capacity = capacity
        self.dropped = 0
        self.closed = False

    def _offer(self, change: StateChange) -> None:
        if self._queue.qsize() >= self._capacity:
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(change)

    async def get(self) -> Optional[StateChange]:
        """Wait for the next change; None once the subscription is closed."""
        change = await self._queue.get()
        if change is None:
            # leave the marker for any other waiter
            self._queue.put_nowait(None)
        return change

    def get_nowait(self) -> Optional[StateChange]:
        """Return the next pending change, or None if there is none."""
        try:
            change = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if change is None:
            self._queue.put_nowait(None)
        return change

    def close(self) -> None:
        if self.closed:
            return
        self._bus._unsubscribe(self)
        self.closed = True
        self._queue.put_nowait(None)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> StateChange:
        change = await self.get()
        if change is None:
            raise StopAsyncIteration
        return change

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class EventBus:
    """Multi-subscriber, non-blocking, lossy broadcast channel."""

    def __init__(self, capacity: int = 16):
        self.capacity = capacity
        self._subscribers: Set[Subscription] = set()

    def subscribe(self) -> Subscription:
        """Attach a subscriber. Earlier changes are not replayed."""
        subscription = Subscription(self, self.capacity)
        self._subscribers.add(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        self._subscribers.discard(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, change: StateChange) -> int:
        """
        Offer a change to every current subscriber without waiting.

        Returns:
            Number of subscribers the change was queued for (0 if none)
        """
        for subscription in list(self._subscribers):
            subscription._offer(change)
        logger.debug(f"Published {change.kind.value} change to {len(self._subscribers)} subscriber(s)")
        return len(self._subscribers)
