"""
Postgres notification listener.

Owns the LISTEN connection to the notification source and turns queued
notifications into NotificationEvents. A lost connection is recovered
with bounded exponential backoff; when every attempt fails the listener
moves to FAILED and the event stream raises SourceConnectionError.
"""

from __future__ import annotations

import re
import select
import threading
from collections.abc import Callable, Iterable, Iterator
from enum import Enum
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import psycopg2
import structlog

from pg_bridge.config import ListenerConfig
from pg_bridge.exceptions import BridgeError, SourceConnectionError, SubscriptionError
from pg_bridge.models import NotificationEvent

logger = structlog.get_logger(__name__)

# Errors that mean the connection is gone rather than a bad statement
LOST_CONNECTION_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError, OSError)


class ListenerState(str, Enum):
    """State of the listener connection."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    CLOSED = "closed"


def quote_ident(name: str) -> str:
    """Quote a channel name as a Postgres identifier."""
    return '"' + name.replace('"', '""') + '"'


def mask_dsn(dsn: str) -> str:
    """Hide the password in a connection URI or keyword DSN."""
    if "://" in dsn:
        parts = urlsplit(dsn)
        if parts.password:
            netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
            return urlunsplit(parts._replace(netloc=netloc))
        return dsn
    return re.sub(r"(password\s*=\s*)(\S+)", r"\1***", dsn)


class ListenerAdapter:
    """
    LISTEN/NOTIFY adapter for a single Postgres connection.

    The connection runs in autocommit mode so notifications are delivered
    as soon as they arrive.
    """

    def __init__(
        self,
        dsn: str,
        config: ListenerConfig | None = None,
        connect_fn: Callable[..., Any] | None = None,
    ) -> None:
        """
        Initialize the listener.

        Args:
            dsn: Connection URI of the notification source.
            config: Reconnect and polling policy.
            connect_fn: Connection factory, defaults to ``psycopg2.connect``.
        """
        self._dsn = dsn
        self._config = config or ListenerConfig()
        self._connect_fn = connect_fn or psycopg2.connect
        self._logger = logger.bind(component="listener", source=mask_dsn(dsn))

        self._state = ListenerState.DISCONNECTED
        self._conn: Any = None
        self._channels: list[str] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._events_started = False
        self._reconnect_count = 0

    @property
    def state(self) -> ListenerState:
        """Get current listener state."""
        return self._state

    @property
    def channels(self) -> list[str]:
        """Channels currently subscribed."""
        return list(self._channels)

    @property
    def reconnect_count(self) -> int:
        """Successful reconnects since startup."""
        return self._reconnect_count

    def connect(self) -> None:
        """
        Open and verify the connection.

        Raises:
            SourceConnectionError: If the source is unreachable.
        """
        self._logger.info("connecting_to_source")
        try:
            conn = self._connect_fn(
                self._dsn, connect_timeout=self._config.connect_timeout_seconds
            )
            conn.autocommit = True
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
        except psycopg2.Error as e:
            raise SourceConnectionError.connection_failed(
                mask_dsn(self._dsn), str(e).strip(), cause=e
            ) from e

        with self._lock:
            self._conn = conn
        self._state = ListenerState.CONNECTED
        self._logger.info("connected_to_source")

    def subscribe(self, channels: Iterable[str]) -> None:
        """
        LISTEN on every channel.

        Raises:
            SubscriptionError: If any channel cannot be subscribed.
        """
        channels = list(channels)
        if self._conn is None:
            self._state = ListenerState.FAILED
            raise SubscriptionError.listen_failed(
                channels[0] if channels else "", "not connected"
            )

        for channel in channels:
            self._logger.info("listening_on_channel", channel=channel)
            try:
                with self._lock, self._conn.cursor() as cursor:
                    cursor.execute(f"LISTEN {quote_ident(channel)}")
            except psycopg2.Error as e:
                self._state = ListenerState.FAILED
                raise SubscriptionError.listen_failed(channel, str(e).strip(), cause=e) from e

        self._channels = channels
        self._state = ListenerState.SUBSCRIBED

    def events(self) -> Iterator[NotificationEvent]:
        """
        Yield notifications in arrival order until ``close()``.

        The generator cannot be restarted.

        Raises:
            RuntimeError: If called more than once.
            SourceConnectionError: If reconnecting is exhausted.
        """
        if self._events_started:
            raise RuntimeError("Event stream already consumed")
        self._events_started = True
        return self._iter_events()

    def _iter_events(self) -> Iterator[NotificationEvent]:
        while not self._stop_event.is_set():
            try:
                notifications = self._poll()
            except LOST_CONNECTION_ERRORS as e:
                if self._stop_event.is_set():
                    return
                self._reconnect(e)
                continue

            for notification in notifications:
                yield NotificationEvent(
                    channel=notification.channel,
                    payload=notification.payload,
                    pid=notification.pid,
                )

    def _poll(self) -> list[Any]:
        """Wait for the socket and collect queued notifications."""
        conn = self._conn
        if conn is None:
            raise psycopg2.InterfaceError("connection is closed")

        if not conn.notifies:
            readable, _, _ = select.select([conn], [], [], self._config.poll_timeout_seconds)
            if not readable:
                return []

        with self._lock:
            conn.poll()
            notifications = list(conn.notifies)
            del conn.notifies[:]
        return notifications

    def _reconnect(self, cause: BaseException) -> None:
        """
        Re-establish the connection and subscriptions.

        Raises:
            SourceConnectionError: When every attempt failed.
        """
        self._state = ListenerState.RECONNECTING
        self._logger.warning("listener_connection_lost", error=str(cause).strip())
        self._discard_connection()

        delay = self._config.min_reconnect_interval_seconds
        last_error: BaseException = cause
        attempts = self._config.max_reconnect_attempts

        for attempt in range(1, attempts + 1):
            if self._stop_event.wait(delay):
                return

            self._logger.info("listener_reconnecting", attempt=attempt, delay=delay)
            try:
                self.connect()
                self.subscribe(self._channels)
            except BridgeError as e:
                last_error = e
                self._state = ListenerState.RECONNECTING
                self._discard_connection()
                self._logger.warning(
                    "listener_reconnect_failed",
                    attempt=attempt,
                    error=str(e),
                )
                delay = min(delay * 2, self._config.max_reconnect_interval_seconds)
                continue

            self._reconnect_count += 1
            self._logger.info("listener_reconnected", attempt=attempt)
            return

        self._state = ListenerState.FAILED
        self._logger.error("listener_failed", attempts=attempts, error=str(last_error))
        raise SourceConnectionError.reconnect_exhausted(attempts, cause=last_error)

    def ping(self) -> bool:
        """Check the connection with ``SELECT 1``; never raises."""
        with self._lock:
            conn = self._conn
            if conn is None or conn.closed:
                return False
            try:
                with conn.cursor() as cursor:
                    cursor.execute("SELECT 1")
                    cursor.fetchone()
            except psycopg2.Error as e:
                self._logger.debug("ping_failed", error=str(e).strip())
                return False
        return True

    def request_stop(self) -> None:
        """
        Ask the event stream to end after the current poll.

        Only sets a flag, so it is safe from a signal handler that may
        interrupt ``_poll`` while the connection lock is held. The consumer
        calls ``close()`` once the stream has returned.
        """
        self._stop_event.set()

    def close(self) -> None:
        """Stop the event stream and close the connection."""
        self._stop_event.set()
        self._discard_connection()
        self._state = ListenerState.CLOSED
        self._logger.info("listener_closed")

    def _discard_connection(self) -> None:
        with self._lock:
            conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.close()
        except psycopg2.Error as e:
            self._logger.debug("connection_close_failed", error=str(e).strip())
