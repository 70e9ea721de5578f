"""
Event Broadcaster

Fans newly created events out to live subscribers. Each subscriber owns a
bounded queue that its transport drains; ``notify`` never awaits, so a slow
or dead subscriber cannot hold up ingestion.
"""

import asyncio
import itertools
import logging
from typing import Dict, List, Optional

from warwatch.api.schemas import CanonicalEvent
from warwatch.core.metrics import BROADCAST_DROPS

logger = logging.getLogger(__name__)

_subscription_ids = itertools.count(1)


class Subscription:
    """Handle for one live listener. Delivery order matches notify order."""

    def __init__(self, max_queue: int) -> None:
        self.id = next(_subscription_ids)
        self.queue: "asyncio.Queue[CanonicalEvent]" = asyncio.Queue(maxsize=max_queue)
        self.dropped = 0

    async def get(self) -> CanonicalEvent:
        return await self.queue.get()

    def get_nowait(self) -> Optional[CanonicalEvent]:
        try:
            return self.queue.get_nowait()
        except asyncio.QueueEmpty:
            return None


class EventBroadcaster:
    def __init__(self, max_queue: int = 256) -> None:
        self.max_queue = max_queue
        self._subscribers: Dict[int, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self.max_queue)
        self._subscribers[subscription.id] = subscription
        logger.debug(f"Subscriber {subscription.id} added ({len(self._subscribers)} live)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscribers.pop(subscription.id, None) is not None:
            logger.debug(f"Subscriber {subscription.id} removed ({len(self._subscribers)} live)")

    def notify(self, event: CanonicalEvent) -> int:
        """Queue ``event`` for every subscriber; returns how many accepted it."""
        delivered = 0
        subscribers: List[Subscription] = list(self._subscribers.values())
        for subscription in subscribers:
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                subscription.dropped += 1
                BROADCAST_DROPS.inc()
                logger.warning(f"Subscriber {subscription.id} queue full; dropped event {event.id}")
        return delivered
