"""
Bounded batching stage between the listener and the dispatcher.

Events accumulate until the queue holds ``capacity`` of them, then the
whole queue is released in FIFO order. The enqueue, size check and drain
run under one lock so a drain never interleaves with an enqueue.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable

import structlog

from pg_bridge.exceptions import ConfigurationError
from pg_bridge.models import NotificationEvent

logger = structlog.get_logger(__name__)

DEFAULT_CAPACITY = 50


class BatchQueue:
    """FIFO buffer that releases events one by one once it is full."""

    def __init__(
        self,
        on_release: Callable[[NotificationEvent], object],
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        """
        Initialize the queue.

        Args:
            on_release: Called sequentially with every released event.
            capacity: Number of events that triggers a drain.

        Raises:
            ConfigurationError: If capacity is below 1.
        """
        if capacity < 1:
            raise ConfigurationError.validation_failed(
                "capacity", capacity, "must be at least 1"
            )
        self._on_release = on_release
        self._capacity = capacity
        self._events: deque[NotificationEvent] = deque()
        self._lock = threading.Lock()
        self._drain_count = 0

    @property
    def capacity(self) -> int:
        """Configured capacity."""
        return self._capacity

    @property
    def drain_count(self) -> int:
        """Number of drains so far."""
        return self._drain_count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def enqueue(self, event: NotificationEvent) -> int:
        """
        Append an event, draining the queue if it reached capacity.

        Returns:
            Number of events released by this call.
        """
        with self._lock:
            self._events.append(event)
            if len(self._events) < self._capacity:
                return 0
            return self._drain_locked()

    def drain(self) -> int:
        """Release whatever is buffered, regardless of capacity."""
        with self._lock:
            return self._drain_locked()

    def _drain_locked(self) -> int:
        released = 0
        while self._events:
            event = self._events.popleft()
            try:
                self._on_release(event)
            except Exception as e:
                logger.error(
                    "batch_release_failed",
                    channel=event.channel,
                    error=str(e),
                )
            released += 1

        if released:
            self._drain_count += 1
            logger.debug("batch_drained", released=released)
        return released
