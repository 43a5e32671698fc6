"""Tests for data models."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from pg_bridge.models import (
    DeliveryStatus,
    DestinationKind,
    DestinationRef,
    NotificationEvent,
    Route,
    SinkResult,
)


class TestNotificationEvent:
    """Tests for NotificationEvent model."""

    def test_create_minimal(self) -> None:
        """Test creating an event with only a channel."""
        event = NotificationEvent(channel="orders")

        assert event.channel == "orders"
        assert event.payload == ""
        assert event.pid is None
        assert event.received_at.tzinfo == timezone.utc

    def test_payload_is_kept_verbatim(self) -> None:
        """Payload text is not parsed or normalized."""
        payload = '  {"id": 1,\n "name":"x"}  '
        event = NotificationEvent(channel="orders", payload=payload)
        assert event.payload == payload

    def test_payload_size_counts_bytes(self) -> None:
        """Size is measured in utf-8 bytes, not characters."""
        event = NotificationEvent(channel="orders", payload="héllo")
        assert event.payload_size == 6

    def test_frozen(self) -> None:
        """Events are immutable once created."""
        event = NotificationEvent(channel="orders", payload="x")
        with pytest.raises(ValidationError):
            event.payload = "y"

    def test_channel_required(self) -> None:
        """Channel is mandatory."""
        with pytest.raises(ValidationError):
            NotificationEvent()  # type: ignore[call-arg]

    def test_explicit_timestamp(self) -> None:
        """An explicit timestamp is preserved."""
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        event = NotificationEvent(channel="orders", received_at=ts, pid=99)
        assert event.received_at == ts
        assert event.pid == 99


class TestRoute:
    """Tests for Route and DestinationRef models."""

    def test_route(self) -> None:
        """Test creating a route."""
        route = Route(
            channel="orders",
            destination=DestinationRef(kind=DestinationKind.TOPIC, target="arn:topic"),
        )
        assert route.destination.kind == DestinationKind.TOPIC
        assert route.destination.target == "arn:topic"

    def test_destination_equality(self) -> None:
        """Equal destinations compare equal."""
        a = DestinationRef(kind=DestinationKind.WEBHOOK, target="https://x")
        b = DestinationRef(kind="webhook", target="https://x")
        assert a == b

    def test_unknown_kind_rejected(self) -> None:
        """Only the three destination families are valid."""
        with pytest.raises(ValidationError):
            DestinationRef(kind="queue", target="x")


class TestSinkResult:
    """Tests for SinkResult model."""

    def test_defaults(self) -> None:
        """Test default values."""
        result = SinkResult(
            ok=True,
            status=DeliveryStatus.DELIVERED,
            sink="topic-sink",
            channel="orders",
            target="arn:topic",
        )
        assert result.error is None
        assert result.payload_size == 0
        assert result.duration_ms == 0.0

    def test_serialization(self) -> None:
        """Enums serialize to their values."""
        result = SinkResult(
            ok=True,
            status=DeliveryStatus.ENQUEUED,
            sink="stream-sink",
            channel="users",
            target="users",
        )
        data = result.model_dump(mode="json")
        assert data["status"] == "enqueued"
