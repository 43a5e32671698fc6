"""Pytest configuration and shared fixtures for pg-bridge tests."""

from __future__ import annotations

import socket
import threading
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

import psycopg2
import pytest

from pg_bridge.models import DeliveryStatus, DestinationKind, NotificationEvent
from pg_bridge.sinks.base import BaseSink, SinkConfig


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


# =============================================================================
# Fake psycopg2 connection
# =============================================================================


@dataclass
class FakeNotify:
    """Stand-in for psycopg2.extensions.Notify."""

    channel: str
    payload: str
    pid: int = 4242


class FakeCursor:
    """Cursor that records statements on its connection."""

    def __init__(self, conn: FakeConnection) -> None:
        self._conn = conn

    def __enter__(self) -> FakeCursor:
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def execute(self, statement: str) -> None:
        if self._conn.closed:
            raise psycopg2.InterfaceError("connection already closed")
        error = self._conn.fail_on.get(statement)
        if error is not None:
            raise error
        self._conn.executed.append(statement)

    def fetchone(self) -> tuple[int]:
        return (1,)


class FakeConnection:
    """
    Minimal psycopg2 connection.

    ``incoming`` holds batches of notifications; each ``poll()`` moves the
    next batch into ``notifies``. ``poll_error`` makes the next poll raise.
    """

    def __init__(
        self,
        incoming: Iterable[list[FakeNotify]] = (),
        fail_on: dict[str, Exception] | None = None,
    ) -> None:
        self.incoming: deque[list[FakeNotify]] = deque(incoming)
        self.fail_on = fail_on or {}
        self.notifies: list[FakeNotify] = []
        self.executed: list[str] = []
        self.autocommit = False
        self.closed = 0
        self.poll_error: Exception | None = None

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def poll(self) -> None:
        if self.poll_error is not None:
            raise self.poll_error
        if self.incoming:
            self.notifies.extend(self.incoming.popleft())

    def fileno(self) -> int:
        return 0

    def close(self) -> None:
        self.closed = 1


@pytest.fixture
def taken_port() -> Iterator[int]:
    """Port held by a listening socket for the duration of the test."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        yield sock.getsockname()[1]


@pytest.fixture
def always_readable(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make the listener's socket wait return immediately as readable."""
    monkeypatch.setattr(
        "pg_bridge.listener.select.select",
        lambda rlist, wlist, xlist, timeout: (rlist, [], []),
    )


# =============================================================================
# Recording sink
# =============================================================================


class RecordingSink(BaseSink):
    """Sink that records every publish call."""

    kind = DestinationKind.TOPIC

    def __init__(
        self,
        name: str = "recording-sink",
        fail: bool = False,
        gate: threading.Event | None = None,
    ) -> None:
        super().__init__(SinkConfig(name=name))
        self.calls: list[tuple[str, str, str]] = []
        self.fail = fail
        self.gate = gate
        self.started = threading.Event()
        self._calls_lock = threading.Lock()

    def _publish(self, channel: str, target: str, payload: str) -> DeliveryStatus:
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5.0)
        with self._calls_lock:
            self.calls.append((channel, target, payload))
        if self.fail:
            raise RuntimeError("boom")
        return DeliveryStatus.DELIVERED


@pytest.fixture
def recording_sink() -> RecordingSink:
    """Create a recording sink."""
    return RecordingSink()


# =============================================================================
# Fake listener
# =============================================================================


class FakeListener:
    """Listener that replays a fixed list of events."""

    def __init__(self, events: Iterable[NotificationEvent] = ()) -> None:
        self._events = list(events)
        self.subscribed: list[str] = []
        self.connected = False
        self.closed = False

    def connect(self) -> None:
        self.connected = True

    def subscribe(self, channels: Iterable[str]) -> None:
        self.subscribed = list(channels)

    def events(self) -> Iterator[NotificationEvent]:
        for event in self._events:
            if self.closed:
                return
            yield event

    def ping(self) -> bool:
        return self.connected and not self.closed

    def request_stop(self) -> None:
        self.closed = True

    def close(self) -> None:
        self.closed = True

    @property
    def state(self) -> Any:
        return None


@pytest.fixture
def sample_event() -> NotificationEvent:
    """Create a sample notification."""
    return NotificationEvent(channel="orders", payload='{"id":1}')
