"""
Notification dispatch.

Resolves each event's channel through the route table and hands the
publish call to a worker pool. The caller never waits for the sink:
``on_event`` schedules the call and returns. Concurrency is bounded by
the pool size, and admission is bounded by ``max_pending``; events past
that limit are dropped with a warning instead of blocking the caller.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

import structlog

from pg_bridge.config import DispatchConfig
from pg_bridge.exceptions import PublishError
from pg_bridge.models import DestinationKind, DestinationRef, NotificationEvent
from pg_bridge.routing import RouteTable
from pg_bridge.sinks.base import BaseSink

logger = structlog.get_logger(__name__)


@dataclass
class DispatchStats:
    """Statistics for the dispatcher."""

    routed: int = 0
    unrouted: int = 0
    rejected: int = 0
    succeeded: int = 0
    failed: int = 0


class Dispatcher:
    """
    Fan-out dispatcher.

    One routed event produces exactly one sink call, with the payload
    passed through unmodified. Unrouted events are discarded silently.
    """

    def __init__(
        self,
        routes: RouteTable,
        sinks: Mapping[DestinationKind, BaseSink],
        config: DispatchConfig | None = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            routes: Route table used to resolve channels.
            sinks: Sink per destination kind.
            config: Worker pool and admission limits.
        """
        self._routes = routes
        self._sinks = dict(sinks)
        self._config = config or DispatchConfig()
        self._logger = logger.bind(component="dispatcher")

        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="pg-bridge-dispatch",
        )
        self._admission = threading.BoundedSemaphore(self._config.max_pending)
        self._stats = DispatchStats()
        self._stats_lock = threading.Lock()

    @property
    def stats(self) -> DispatchStats:
        """Get dispatch statistics."""
        with self._stats_lock:
            return DispatchStats(**vars(self._stats))

    def on_event(self, event: NotificationEvent) -> Future[None] | None:
        """
        Route one event.

        Returns:
            The scheduled task, or None if the event was not dispatched.
        """
        destination = self._routes.lookup(event.channel)
        if destination is None:
            self._count("unrouted")
            self._logger.debug("notification_unrouted", channel=event.channel)
            return None

        sink = self._sinks.get(destination.kind)
        if sink is None:
            self._count("failed")
            self._logger.error(
                "sink_not_configured",
                channel=event.channel,
                destination=destination.target,
                kind=destination.kind.value,
            )
            return None

        if not self._admission.acquire(blocking=False):
            self._count("rejected")
            self._logger.warning(
                "dispatch_rejected",
                channel=event.channel,
                destination=destination.target,
                payload_size=event.payload_size,
                max_pending=self._config.max_pending,
            )
            return None

        try:
            future = self._executor.submit(self._deliver, sink, event, destination)
        except RuntimeError:
            # Executor already shut down
            self._admission.release()
            self._count("rejected")
            self._logger.warning("dispatch_after_shutdown", channel=event.channel)
            return None

        self._count("routed")
        return future

    def _deliver(
        self,
        sink: BaseSink,
        event: NotificationEvent,
        destination: DestinationRef,
    ) -> None:
        """Run one sink call; failures stay inside this task."""
        try:
            sink.publish(event.channel, destination.target, event.payload)
        except PublishError:
            # Already logged by the sink
            self._count("failed")
        except Exception as e:
            self._count("failed")
            self._logger.error(
                "dispatch_error",
                channel=event.channel,
                destination=destination.target,
                sink=sink.name,
                error=str(e),
            )
        else:
            self._count("succeeded")
        finally:
            self._admission.release()

    def _count(self, field: str) -> None:
        with self._stats_lock:
            setattr(self._stats, field, getattr(self._stats, field) + 1)

    def shutdown(self, wait: bool = False) -> None:
        """
        Stop accepting events.

        In-flight sink calls are not awaited unless ``wait`` is set.
        """
        self._executor.shutdown(wait=wait)
        self._logger.info("dispatcher_stopped", **vars(self.stats))
