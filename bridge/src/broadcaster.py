"""
In-process fan-out of live events to WebSocket subscribers.

Each subscriber owns a bounded asyncio.Queue. ``publish`` puts the event on
every current queue without awaiting, so a slow or vanished subscriber can
never stall ingestion: when a subscriber's queue is full the event is
dropped for that subscriber only. Delivery is at most once, in publish
order, with no replay for late joiners. Durability is the partition log's
job, not this one's.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging

from bridge.src.models import LiveEvent

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


class Subscription:
    """One live subscriber's inbox."""

    def __init__(self, maxsize: int) -> None:
        self._queue: asyncio.Queue[LiveEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    async def get(self) -> LiveEvent:
        """Wait for the next event."""
        return await self._queue.get()

    def get_nowait(self) -> LiveEvent:
        return self._queue.get_nowait()

    def pending(self) -> int:
        return self._queue.qsize()

    def _offer(self, event: LiveEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True


class Broadcaster:
    """Fan-out hub for telemetry and link-status events.

    Args:
        queue_size: Per-subscriber buffer size before events are dropped.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Register a new subscriber; it sees events published from now on."""
        subscription = Subscription(self._queue_size)
        self._subscribers.add(subscription)
        logger.info("Live subscriber joined (total=%d)", len(self._subscribers))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber. Unknown subscriptions are ignored."""
        if subscription in self._subscribers:
            self._subscribers.discard(subscription)
            logger.info("Live subscriber left (total=%d)", len(self._subscribers))

    def publish(self, event: LiveEvent) -> int:
        """Offer *event* to every subscriber without blocking.

        Returns:
            The number of subscribers the event was queued for.
        """
        delivered = 0
        for subscription in tuple(self._subscribers):
            if subscription._offer(event):
                delivered += 1
            else:
                logger.warning(
                    "Live subscriber queue full, dropped %s event", event.event
                )
        return delivered
