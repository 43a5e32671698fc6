"""
Core data models for the bridge.

Notifications, routes and delivery results are plain pydantic models;
the ones that cross threads are frozen.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DestinationKind(str, Enum):
    """Destination families a route can point at."""

    TOPIC = "topic"
    WEBHOOK = "webhook"
    STREAM = "stream"


class DeliveryStatus(str, Enum):
    """Outcome of a single sink call."""

    DELIVERED = "delivered"
    ENQUEUED = "enqueued"
    FAILED = "failed"


class NotificationEvent(BaseModel):
    """A (channel, payload) message emitted by the notification source."""

    model_config = ConfigDict(frozen=True)

    channel: str = Field(..., description="Channel the notification was raised on")
    payload: str = Field(default="", description="Notification payload, passed through untouched")
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc),
        description="When the listener received the notification",
    )
    pid: int | None = Field(default=None, description="PID of the notifying backend")

    @property
    def payload_size(self) -> int:
        """Payload size in bytes."""
        return len(self.payload.encode("utf-8"))


class DestinationRef(BaseModel):
    """Where a routed notification is published."""

    model_config = ConfigDict(frozen=True)

    kind: DestinationKind = Field(..., description="Destination family")
    target: str = Field(..., description="Topic identifier, URL or stream partition key")


class Route(BaseModel):
    """Static mapping from one channel to one destination."""

    model_config = ConfigDict(frozen=True)

    channel: str = Field(..., description="Channel name (unique key)")
    destination: DestinationRef = Field(..., description="Resolved destination")


class SinkResult(BaseModel):
    """Result of one publish call, for observability only."""

    ok: bool = Field(..., description="Whether the call succeeded")
    status: DeliveryStatus = Field(..., description="Delivery outcome")
    sink: str = Field(..., description="Name of the sink that handled the call")
    channel: str = Field(..., description="Source channel")
    target: str = Field(..., description="Destination target")
    payload_size: int = Field(default=0, description="Payload size in bytes")
    error: str | None = Field(default=None, description="Error message if the call failed")
    duration_ms: float = Field(default=0.0, description="Time spent in the sink call")
