"""Delivery of chain tip block notifications to many subscribers."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from queue import Empty
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .concurrent_queue import ConcurrentQueue
from .notifications import BlockNtfn

log = logging.getLogger(__name__)
log.addHandler(logging.NullHandler())

# How long the handler waits on the source before checking for shutdown.
_POLL_INTERVAL = 0.05


class SubscriptionManagerStoppedError(RuntimeError):
    """Raised when subscribing to a manager that has been stopped."""

    def __init__(self, message: str = "subscription manager was stopped") -> None:
        super().__init__(message)


class NotificationSource(Protocol):
    """Something that delivers block notifications for the tip of a chain."""

    def notifications(self) -> Any:
        """Return the queue the latest tip notifications arrive on.

        The returned object must offer ``get(timeout=...)`` raising
        ``queue.Empty`` when nothing arrives in time. A ``None`` item means
        the source can deliver no more notifications.
        """

    def notifications_since_height(self, height: int) -> Tuple[Sequence[BlockNtfn], int]:
        """Return the backlog of notifications after ``height`` and the tip height."""


@dataclass
class Subscription:
    """A client's registration for block notifications.

    Notifications are read from ``notifications`` with ``get(timeout)``.
    Once the subscription is cancelled, or its manager stopped, the queue
    stops running and ``get`` raises ``queue.Empty`` once drained.
    """

    id: int
    notifications: ConcurrentQueue
    _on_cancel: Callable[[int], None] = field(repr=False)

    def cancel(self) -> None:
        """Stop receiving notifications. Calling it again has no effect."""
        self._on_cancel(self.id)


class SubscriptionManager:
    """Fans notifications from a NotificationSource out to subscribers."""

    def __init__(self, source: NotificationSource) -> None:
        self._source = source
        self._subscribers: Dict[int, ConcurrentQueue] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._quit = threading.Event()
        self._started = False
        self._stopped = False
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Begin relaying notifications. Calling it again has no effect."""
        with self._state_lock:
            if self._started:
                return
            self._started = True
            log.debug("Starting block notifications subscription manager")
            self._thread = threading.Thread(
                target=self._handle_notifications,
                name="subscription-manager",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """Stop relaying and close every subscription. Idempotent."""
        with self._state_lock:
            if self._stopped:
                return
            self._stopped = True
            thread = self._thread

        log.debug("Stopping block notifications subscription manager")
        self._quit.set()
        if thread is not None:
            thread.join()

        with self._lock:
            subscribers: List[ConcurrentQueue] = list(self._subscribers.values())
            self._subscribers.clear()
        for ntfn_queue in subscribers:
            ntfn_queue.stop()

    def _handle_notifications(self) -> None:
        incoming = self._source.notifications()
        while not self._quit.is_set():
            try:
                ntfn = incoming.get(timeout=_POLL_INTERVAL)
            except Empty:
                continue
            if ntfn is None:
                log.warning("Block source is unable to deliver new updates")
                return
            self._notify_subscribers(ntfn)

    def new_subscription(self, best_height: int = 0) -> Subscription:
        """Register a client whose best known height is ``best_height``.

        The backlog of notifications from that height to the tip is queued
        before any new notification. Raises SubscriptionManagerStoppedError
        if the manager is stopped, and RuntimeError if the backlog cannot be
        retrieved.
        """
        sub_id = next(self._ids)
        ntfn_queue = ConcurrentQueue()
        ntfn_queue.start()

        with self._lock:
            if self._quit.is_set():
                ntfn_queue.stop()
                raise SubscriptionManagerStoppedError()

            log.info("Registering block subscription: id=%d", sub_id)
            try:
                blocks, current_height = self._source.notifications_since_height(
                    best_height
                )
            except Exception as err:
                ntfn_queue.stop()
                raise RuntimeError(
                    f"unable to retrieve blocks since height={best_height}: {err}"
                ) from err

            log.debug(
                "Delivering backlog of block notifications: id=%d, "
                "start_height=%d, end_height=%d",
                sub_id, best_height, current_height,
            )
            for block in blocks or ():
                self._deliver(ntfn_queue, block)

            self._subscribers[sub_id] = ntfn_queue

        return Subscription(
            id=sub_id, notifications=ntfn_queue, _on_cancel=self._cancel_subscription
        )

    def _cancel_subscription(self, sub_id: int) -> None:
        with self._lock:
            ntfn_queue = self._subscribers.pop(sub_id, None)
        if ntfn_queue is None:
            return
        log.info("Canceling block subscription: id=%d", sub_id)
        ntfn_queue.stop()

    def _notify_subscribers(self, ntfn: BlockNtfn) -> None:
        log.debug("Notifying %s", ntfn)
        with self._lock:
            for ntfn_queue in self._subscribers.values():
                self._deliver(ntfn_queue, ntfn)

    @staticmethod
    def _deliver(ntfn_queue: ConcurrentQueue, ntfn: BlockNtfn) -> None:
        try:
            ntfn_queue.put(ntfn)
        except RuntimeError:
            # The subscriber's queue was stopped; it no longer wants updates.
            pass