# vault/services/subscriber_registry.py

import asyncio
import logging
import threading
import time
import uuid
from typing import Callable, List, Optional

from vault.core.errors import DeliveryFailure

logger = logging.getLogger(__name__)


class Subscriber:
    """
    Delivery handle for one open event stream.

    Frames are queued on the event loop that serves the stream. deliver() may
    be called from any thread; it never blocks. Once more than `max_pending`
    frames are waiting the subscriber is treated as dead and deliver() raises
    DeliveryFailure, leaving the broadcaster to drop it.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, max_pending: int = 100,
                 peer: Optional[str] = None):
        self.subscriber_id = uuid.uuid4().hex
        self.peer = peer or "unknown"
        self.connected_at = time.time()
        self.max_pending = max_pending
        self.closed = False

        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue()

        # Frames handed to deliver() and not yet taken by next_frame(), including
        # ones still waiting on the loop to be put on the queue
        self._pending = 0
        self._pending_lock = threading.Lock()

    @property
    def pending(self) -> int:
        with self._pending_lock:
            return self._pending

    def deliver(self, frame: str) -> None:
        if self.closed:
            raise DeliveryFailure(f"Subscriber {self.subscriber_id} is closed")
        with self._pending_lock:
            if self._pending >= self.max_pending:
                raise DeliveryFailure(
                    f"Subscriber {self.subscriber_id} has {self._pending} undelivered frames"
                )
            self._pending += 1
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, frame)
        except RuntimeError as e:
            with self._pending_lock:
                self._pending -= 1
            # Loop already closed: the connection is gone
            raise DeliveryFailure(f"Subscriber {self.subscriber_id} loop is closed") from e

    def close(self) -> None:
        """Mark closed and wake the stream so it ends. Idempotent."""
        if self.closed:
            return
        self.closed = True
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        except RuntimeError:
            logger.debug(f"Subscriber {self.subscriber_id} closed after its loop stopped")

    async def next_frame(self) -> Optional[str]:
        """Wait for the next frame; None means the subscriber was closed."""
        if self.closed and self._queue.empty():
            return None
        frame = await self._queue.get()
        if frame is not None:
            with self._pending_lock:
                self._pending -= 1
        return frame

    def __repr__(self) -> str:
        return f"Subscriber(id={self.subscriber_id}, peer={self.peer}, pending={self.pending})"


class SubscriberRegistry:
    """
    Process-lifetime set of live subscribers.

    Holds non-owning references: the stream that created a subscriber is
    responsible for unregistering it. register/unregister are idempotent and
    may be called from any thread.
    """

    def __init__(self):
        self._subscribers = set()
        self._lock = threading.Lock()

    def register(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.add(subscriber)

    def unregister(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.discard(subscriber)

    def snapshot(self) -> List[Subscriber]:
        with self._lock:
            return list(self._subscribers)

    def for_each(self, fn: Callable[[Subscriber], None]) -> None:
        """Call fn on a snapshot, so fn may unregister subscribers while iterating"""
        for subscriber in self.snapshot():
            fn(subscriber)

    def __contains__(self, subscriber: Subscriber) -> bool:
        with self._lock:
            return subscriber in self._subscribers

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
