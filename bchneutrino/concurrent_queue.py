"""An unbounded, thread-safe FIFO queue with an explicit running state."""

from __future__ import annotations

import threading
from collections import deque
from queue import Empty
from typing import Any, Deque, Optional


class ConcurrentQueue:
    """Unbounded FIFO queue that accepts items only while it is running.

    Items can be pushed once :meth:`start` has been called and until
    :meth:`stop` is called. Stopping does not discard queued items: they can
    still be drained afterwards, but a consumer waiting on an empty queue is
    released as soon as the queue stops.
    """

    def __init__(self) -> None:
        self._items: Deque[Any] = deque()
        self._cond = threading.Condition()
        self._started = False
        self._stopped = False

    def start(self) -> None:
        """Start accepting items. Calling it more than once has no effect."""
        with self._cond:
            self._started = True

    def stop(self) -> None:
        """Stop accepting items and wake any waiting consumers. Idempotent."""
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            self._cond.notify_all()

    @property
    def running(self) -> bool:
        """Whether the queue currently accepts new items."""
        with self._cond:
            return self._started and not self._stopped

    def put(self, item: Any) -> None:
        """Append an item to the back of the queue.

        Raises RuntimeError if the queue has not been started or was stopped.
        """
        with self._cond:
            if not self._started or self._stopped:
                raise RuntimeError("queue is not running")
            self._items.append(item)
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Any:
        """Pop the item at the front of the queue, waiting for one if needed.

        Raises queue.Empty if no item arrives within ``timeout`` seconds, or
        if the queue is stopped while it is empty.
        """
        with self._cond:
            ready = self._cond.wait_for(
                lambda: bool(self._items) or self._stopped, timeout
            )
            if ready and self._items:
                return self._items.popleft()
            raise Empty

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)