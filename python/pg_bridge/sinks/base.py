"""
Base classes for delivery sinks.

Every sink extends BaseSink and implements ``_publish`` for its
destination family. BaseSink owns the per-delivery log entry, the
PublishError wrapping and the delivery counters.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

import structlog

from pg_bridge.exceptions import PublishError
from pg_bridge.models import DeliveryStatus, DestinationKind, SinkResult

logger = structlog.get_logger(__name__)


@dataclass
class SinkConfig:
    """
    Base configuration for sinks.

    Attributes:
        name: Unique name for this sink instance.
        timeout_seconds: Request timeout.
    """

    name: str = "base-sink"
    timeout_seconds: float = 30.0


class BaseSink(ABC):
    """
    Abstract base class for all sink implementations.

    ``publish`` makes one external call (or, for buffering sinks, one
    enqueue) and never retries. A failure is logged once and raised as
    PublishError; the caller decides what to do with it.
    """

    kind: ClassVar[DestinationKind]

    def __init__(self, config: SinkConfig) -> None:
        self._config = config
        self._logger = logger.bind(sink=config.name)
        self._stats_lock = threading.Lock()
        self._delivered_count = 0
        self._failed_count = 0

    @property
    def name(self) -> str:
        """Get the sink name."""
        return self._config.name

    @property
    def stats(self) -> dict[str, int]:
        """Get delivery statistics."""
        with self._stats_lock:
            return {
                "delivered": self._delivered_count,
                "failed": self._failed_count,
                "total": self._delivered_count + self._failed_count,
            }

    def publish(self, channel: str, target: str, payload: str) -> SinkResult:
        """
        Publish a payload to one destination.

        Args:
            channel: Channel the notification came from.
            target: Topic identifier, URL or partition key.
            payload: Notification payload, sent unmodified.

        Returns:
            Result of the delivery attempt.

        Raises:
            PublishError: If the sink call failed.
        """
        payload_size = len(payload.encode("utf-8"))
        started = time.monotonic()

        try:
            status = self._publish(channel, target, payload)
        except Exception as e:
            duration_ms = (time.monotonic() - started) * 1000
            with self._stats_lock:
                self._failed_count += 1

            error = (
                e
                if isinstance(e, PublishError)
                else PublishError.delivery_failed(self.name, target, str(e), cause=e)
            )
            self._logger.error(
                "delivery_failed",
                channel=channel,
                destination=target,
                payload_size=payload_size,
                duration_ms=round(duration_ms, 2),
                error=error.to_dict(),
            )
            if error is e:
                raise
            raise error from e

        duration_ms = (time.monotonic() - started) * 1000
        with self._stats_lock:
            self._delivered_count += 1

        self._logger.info(
            "delivery_succeeded",
            channel=channel,
            destination=target,
            payload_size=payload_size,
            status=status.value,
            duration_ms=round(duration_ms, 2),
        )

        return SinkResult(
            ok=True,
            status=status,
            sink=self.name,
            channel=channel,
            target=target,
            payload_size=payload_size,
            duration_ms=duration_ms,
        )

    @abstractmethod
    def _publish(self, channel: str, target: str, payload: str) -> DeliveryStatus:
        """
        Perform the actual publish operation.

        Returns:
            DELIVERED once the destination accepted the payload, or
            ENQUEUED when transmission happens later.

        Raises:
            Exception: If publishing fails.
        """

    def validate_config(self) -> list[str]:
        """
        Validate the sink configuration.

        Returns:
            List of validation error messages.
        """
        errors: list[str] = []
        if not self._config.name:
            errors.append("Sink name is required")
        if self._config.timeout_seconds <= 0:
            errors.append("timeout_seconds must be positive")
        return errors

    def health_check(self) -> bool:
        """Check if the sink is operational."""
        return not self.validate_config()

    def start(self) -> None:
        """Start background work; most sinks have none."""

    def close(self) -> None:
        """Release sink resources."""


class SinkFactory:
    """Factory for creating sinks by destination kind."""

    _registry: ClassVar[dict[DestinationKind, type[BaseSink]]] = {}

    @classmethod
    def register(cls, kind: DestinationKind, sink_class: type[BaseSink]) -> None:
        """Register a sink class for a destination kind."""
        cls._registry[kind] = sink_class
        logger.debug("sink_registered", kind=kind.value, sink_class=sink_class.__name__)

    @classmethod
    def sink_class(cls, kind: DestinationKind) -> type[BaseSink]:
        """
        Look up the sink class for a destination kind.

        Raises:
            ValueError: If no sink is registered for the kind.
        """
        if kind not in cls._registry:
            raise ValueError(f"Unknown sink kind: {kind.value}")
        return cls._registry[kind]

    @classmethod
    def create(cls, kind: DestinationKind, config: SinkConfig) -> BaseSink:
        """
        Instantiate the registered sink for a destination kind.

        Raises:
            ValueError: If no sink is registered for the kind.
        """
        return cls.sink_class(kind)(config)

    @classmethod
    def available_kinds(cls) -> list[DestinationKind]:
        """Get list of registered destination kinds."""
        return list(cls._registry.keys())
