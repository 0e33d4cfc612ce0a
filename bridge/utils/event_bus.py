"""
Ordered EventBus used between the broker link and the rest of the bridge.

Key invariants (enforced by call sites + tests):
  - Event topics come from ``bridge.enums.events.BridgeEvent``.
  - A single worker thread delivers events, so subscribers see events in
    publish order and never run concurrently with each other.
  - ``publish`` never blocks the caller (the paho network thread); a full
    queue drops the event and counts it.
"""

import logging
import threading
import time
from collections import defaultdict
from enum import Enum
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)

# Drop warning configuration
_DROP_WARNING_THRESHOLD = 10  # Log summary every N drops
_DROP_WARNING_INTERVAL_SECONDS = 60  # Minimum seconds between drop summaries

_STOP = object()


class EventBus:
    """
    Handles event-driven communication between the broker link and consumers.

    One instance per application, owned by the ServiceContainer.
    """

    def __init__(self, queue_size: int = 1024) -> None:
        self.subscribers: Dict[Hashable, list[Callable[[Any], None]]] = defaultdict(list)
        self.lock = threading.Lock()
        self._queue_size = queue_size
        self._queue: Queue = Queue(maxsize=queue_size)
        self._worker: Optional[threading.Thread] = None
        self._dropped_events = 0
        self._drops_by_event: Dict[str, int] = defaultdict(int)
        self._drops_since_last_warning = 0
        self._last_drop_warning_time = 0.0

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        """Start the delivery worker (idempotent)."""
        with self.lock:
            if self.running:
                return
            self._worker = threading.Thread(target=self._worker_loop, name="bridge-eventbus", daemon=True)
            self._worker.start()
        logger.info("EventBus worker started (queue=%s)", self._queue_size)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker after it has delivered everything already queued."""
        with self.lock:
            worker = self._worker
            self._worker = None
        if worker is None:
            return
        try:
            self._queue.put(_STOP, timeout=timeout)
        except Full:
            logger.warning("EventBus queue full while stopping; worker left to exit with the process")
            return
        worker.join(timeout)
        logger.info("EventBus worker stopped")

    def subscribe(self, event_name: Enum | str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """
        Subscribes a callback function to an event.

        Callbacks of one event run in subscription order.

        Returns:
            A function that removes the subscription.
        """
        name = event_name.value if isinstance(event_name, Enum) else event_name
        with self.lock:
            self.subscribers[name].append(callback)

        def unsubscribe() -> None:
            with self.lock:
                callbacks = self.subscribers.get(name, [])
                try:
                    callbacks.remove(callback)
                except ValueError:
                    return

        return unsubscribe

    def publish(self, event_name: Enum | str, data: Any | None = None) -> bool:
        """
        Queue an event for delivery.

        Returns:
            False when the queue was full and the event was dropped.
        """
        name = event_name.value if isinstance(event_name, Enum) else event_name
        try:
            self._queue.put_nowait((name, data))
        except Full:
            self._record_drop(name)
            return False
        return True

    def _worker_loop(self) -> None:
        """Worker thread loop to process events from the queue."""
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                name, payload = item
                self._deliver(name, payload)
            finally:
                self._queue.task_done()

    def _deliver(self, name: str, payload: Any) -> None:
        with self.lock:
            callbacks = list(self.subscribers.get(name, []))
        for callback in callbacks:
            try:
                callback(payload)
            except Exception as exc:
                logger.error("Error in callback for event %s: %s", name, exc, exc_info=True)

    def drain(self) -> int:
        """Deliver every queued event on the calling thread. Used when no worker runs."""
        delivered = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except Empty:
                return delivered
            try:
                if item is not _STOP:
                    self._deliver(*item)
                    delivered += 1
            finally:
                self._queue.task_done()

    def wait_until_idle(self, timeout: float = 5.0) -> bool:
        """Block until every queued event has been delivered, or *timeout* passes."""
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def _record_drop(self, event_name: str) -> None:
        """Record a dropped event and log periodic warnings."""
        self._dropped_events += 1
        self._drops_by_event[event_name] += 1
        self._drops_since_last_warning += 1

        now = time.time()
        should_warn = (
            self._drops_since_last_warning >= _DROP_WARNING_THRESHOLD
            and (now - self._last_drop_warning_time) >= _DROP_WARNING_INTERVAL_SECONDS
        )

        if should_warn:
            top_drops = sorted(self._drops_by_event.items(), key=lambda x: x[1], reverse=True)[:5]
            top_drops_str = ", ".join(f"{k}:{v}" for k, v in top_drops)

            logger.warning(
                "EventBus dropping events! queue_size=%d, total_dropped=%d, "
                "recent_drops=%d, top_dropped_events=[%s]. "
                "Consider increasing BRIDGE_EVENTBUS_QUEUE_SIZE.",
                self._queue_size,
                self._dropped_events,
                self._drops_since_last_warning,
                top_drops_str,
            )
            self._drops_since_last_warning = 0
            self._last_drop_warning_time = now

    def get_metrics(self) -> Dict[str, Any]:
        """Return lightweight metrics for health endpoints/logging."""
        with self.lock:
            subscriber_count = sum(len(values) for values in self.subscribers.values())
        return {
            "queue_depth": self._queue.qsize(),
            "queue_size": self._queue_size,
            "dropped_events": self._dropped_events,
            "drops_by_event": dict(self._drops_by_event),
            "subscribers": subscriber_count,
            "running": self.running,
        }
