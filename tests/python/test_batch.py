"""Tests for the batch queue."""

from __future__ import annotations

import threading

import pytest

from pg_bridge.batch import BatchQueue
from pg_bridge.exceptions import ConfigurationError
from pg_bridge.models import NotificationEvent


def event(n: int) -> NotificationEvent:
    return NotificationEvent(channel="orders", payload=str(n))


class TestBatchQueue:
    """Test capacity-triggered draining."""

    def test_holds_until_capacity(self) -> None:
        """Nothing is released below capacity."""
        released: list[NotificationEvent] = []
        queue = BatchQueue(released.append, capacity=3)

        assert queue.enqueue(event(1)) == 0
        assert queue.enqueue(event(2)) == 0

        assert released == []
        assert len(queue) == 2

    def test_drains_in_fifo_order(self) -> None:
        """Reaching capacity releases everything in arrival order."""
        released: list[NotificationEvent] = []
        queue = BatchQueue(released.append, capacity=3)

        for n in range(1, 4):
            queue.enqueue(event(n))

        assert [e.payload for e in released] == ["1", "2", "3"]
        assert len(queue) == 0
        assert queue.drain_count == 1

    def test_length_never_exceeds_capacity(self) -> None:
        """The queue is empty again after every drain."""
        queue = BatchQueue(lambda e: None, capacity=4)

        for n in range(25):
            queue.enqueue(event(n))
            assert len(queue) < 4

        assert len(queue) == 25 % 4

    def test_capacity_one(self) -> None:
        """Capacity 1 releases every event immediately."""
        released: list[NotificationEvent] = []
        queue = BatchQueue(released.append, capacity=1)

        assert queue.enqueue(event(1)) == 1
        assert len(released) == 1

    def test_manual_drain(self) -> None:
        """drain() releases a partial batch."""
        released: list[NotificationEvent] = []
        queue = BatchQueue(released.append, capacity=10)
        queue.enqueue(event(1))

        assert queue.drain() == 1
        assert queue.drain() == 0
        assert len(released) == 1

    def test_release_error_does_not_stop_drain(self) -> None:
        """A failing callback does not lose the rest of the batch."""
        released: list[str] = []

        def on_release(e: NotificationEvent) -> None:
            if e.payload == "2":
                raise RuntimeError("boom")
            released.append(e.payload)

        queue = BatchQueue(on_release, capacity=3)
        for n in range(1, 4):
            queue.enqueue(event(n))

        assert released == ["1", "3"]
        assert len(queue) == 0

    def test_invalid_capacity(self) -> None:
        """Capacity below 1 is a configuration error."""
        with pytest.raises(ConfigurationError):
            BatchQueue(lambda e: None, capacity=0)

    def test_concurrent_enqueue(self) -> None:
        """Concurrent producers neither lose nor duplicate events."""
        released: list[NotificationEvent] = []
        queue = BatchQueue(released.append, capacity=7)

        def produce(worker: int) -> None:
            for n in range(100):
                queue.enqueue(NotificationEvent(channel="orders", payload=f"{worker}-{n}"))

        threads = [threading.Thread(target=produce, args=(w,)) for w in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        queue.drain()

        payloads = [e.payload for e in released]
        assert len(payloads) == 400
        assert len(set(payloads)) == 400
