"""
Event Hub

In-process publish/subscribe registry mapping subscriber ids to their
output channels. Each subscriber owns a bounded asyncio queue drained by
its own streaming task, so a stalled reader never holds up the others:
when its queue fills up the write fails and that subscriber is dropped.

Delivery is at-most-once per connected subscriber. There is no replay
buffer. Frames reach each individual subscriber in publish order.
"""

import asyncio
import logging
import threading
from typing import Optional

from orderflow.services.events.base import (
    PING_FRAME,
    DeliveryFailure,
    DomainEvent,
    encode_frame,
)

logger = logging.getLogger(__name__)


class Subscription:
    """
    Output channel of one subscriber.

    The hub writes with `send`; the transport drains it with `async for`.
    Iteration ends once the subscription is closed.
    """

    def __init__(self, subscriber_id: str, max_queue: int = 100):
        self.subscriber_id = subscriber_id
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=max_queue)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, frame: str) -> None:
        """
        Enqueue a frame without blocking.

        Raises:
            DeliveryFailure: Subscription closed or its queue is full
        """
        if self._closed:
            raise DeliveryFailure(f"subscriber {self.subscriber_id} is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull as e:
            raise DeliveryFailure(f"subscriber {self.subscriber_id} is not keeping up") from e

    def close(self) -> None:
        """Close the channel and wake the reader. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        while True:
            try:
                self._queue.put_nowait(None)
                return
            except asyncio.QueueFull:
                # Make room for the end-of-stream marker.
                self._queue.get_nowait()

    def pending(self) -> list[str]:
        """Drain queued frames without waiting."""
        frames = []
        while not self._queue.empty():
            frame = self._queue.get_nowait()
            if frame is not None:
                frames.append(frame)
        return frames

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> str:
        frame = await self._queue.get()
        if frame is None:
            raise StopAsyncIteration
        return frame


class EventHub:
    """
    Subscriber registry with broadcast.

    A single lock guards every registry mutation and each broadcast
    iteration, so a subscribe racing an in-flight publish is neither lost
    nor able to corrupt the iteration.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: dict[str, Subscription] = {}
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscriber_ids(self) -> list[str]:
        with self._lock:
            return list(self._subscribers)

    def subscribe(self, subscriber_id: str) -> Subscription:
        """
        Register a subscriber and return its channel.

        Reusing an id replaces (and closes) the previous channel.
        """
        subscription = Subscription(subscriber_id, max_queue=self.queue_size)
        with self._lock:
            previous = self._subscribers.get(subscriber_id)
            self._subscribers[subscriber_id] = subscription
        if previous is not None:
            previous.close()
            logger.info(f"Subscriber {subscriber_id} reconnected, previous stream closed")
        else:
            logger.info(f"Subscriber {subscriber_id} connected")
        return subscription

    def unsubscribe(self, subscriber_id: str, subscription: Optional[Subscription] = None) -> bool:
        """
        Remove a subscriber. Idempotent.

        When `subscription` is given, the entry is only removed if it is
        still the registered channel, so a stale stream shutting down does
        not evict a client that already reconnected under the same id.

        Returns:
            True if something was removed
        """
        with self._lock:
            current = self._subscribers.get(subscriber_id)
            if current is None or (subscription is not None and current is not subscription):
                removed = None
            else:
                removed = self._subscribers.pop(subscriber_id)
        if subscription is not None:
            subscription.close()
        if removed is None:
            return False
        removed.close()
        logger.info(f"Subscriber {subscriber_id} disconnected")
        return True

    def publish(self, event: DomainEvent) -> int:
        """
        Broadcast an event to every current subscriber.

        Never raises: a failing subscriber is dropped and the rest still
        receive the frame.

        Returns:
            Number of subscribers the frame was written to
        """
        frame = encode_frame(event.to_dict())
        delivered = self._broadcast(frame)
        logger.debug(f"Published {event.type.value} for order {event.order_id} to {delivered} subscriber(s)")
        return delivered

    def ping_all(self) -> int:
        """Write a keep-alive frame to every subscriber."""
        return self._broadcast(PING_FRAME)

    def close_all(self) -> None:
        with self._lock:
            subscriptions = list(self._subscribers.values())
            self._subscribers.clear()
        for subscription in subscriptions:
            subscription.close()

    def _broadcast(self, frame: str) -> int:
        delivered = 0
        with self._lock:
            dropped = []
            for subscriber_id, subscription in self._subscribers.items():
                try:
                    subscription.send(frame)
                    delivered += 1
                except Exception as e:
                    logger.warning(f"Dropping subscriber {subscriber_id}: {e}")
                    dropped.append(subscriber_id)
            for subscriber_id in dropped:
                self._subscribers.pop(subscriber_id).close()
        return delivered


async def keepalive_loop(hub: EventHub, interval: float) -> None:
    """Ping every subscriber on a fixed interval until cancelled."""
    while True:
        await asyncio.sleep(interval)
        hub.ping_all()
