"""Fan-out of change events to every connected subscriber.

Delivery is at-most-once and fire-and-forget: there is no acknowledgement and no replay.
A subscriber whose queue is full misses the event instead of blocking the others; a new
subscriber only sees events published after it subscribed and is expected to resync.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading

from .events import ChangeEvent

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256

_CLOSED = object()


class Subscription:
    def __init__(self, broadcaster: Broadcaster, subscriber_id: int, maxsize: int) -> None:
        self.id = subscriber_id
        self._broadcaster = broadcaster
        self._queue: queue.Queue[object] = queue.Queue(maxsize=maxsize)
        self.closed = False
        self.dropped = 0

    def offer(self, event: ChangeEvent) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            return False
        return True

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Next event, or ``None`` on timeout or once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._broadcaster.unsubscribe(self)
        # Wake a reader blocked in get(); drop an older event if needed to make room.
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            self._queue.put_nowait(_CLOSED)


class Broadcaster:
    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self.queue_size = max(1, queue_size)

    def subscribe(self) -> Subscription:
        with self._lock:
            sub = Subscription(self, next(self._ids), self.queue_size)
            self._subscribers[sub.id] = sub
            count = len(self._subscribers)
        logger.info("channel subscriber %s connected (%s active)", sub.id, count)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            removed = self._subscribers.pop(sub.id, None)
            count = len(self._subscribers)
        if removed is not None:
            logger.info("channel subscriber %s disconnected (%s active)", sub.id, count)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> int:
        """Offer ``event`` to every subscriber, originator included. Returns deliveries."""
        delivered = 0
        # Holding the lock across the loop keeps per-subscriber order equal to publish order.
        with self._lock:
            for sub in list(self._subscribers.values()):
                if sub.offer(event):
                    delivered += 1
                else:
                    logger.warning(
                        "channel subscriber %s skipped %s (queue full)", sub.id, event.type
                    )
        return delivered

    def close(self) -> None:
        with self._lock:
            subs = list(self._subscribers.values())
        for sub in subs:
            sub.close()
