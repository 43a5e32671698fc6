"""
Stream sink.

Buffers records for a Kinesis stream and sends them with PutRecords,
either when the buffer reaches ``buffer_size`` or every
``flush_interval_seconds`` from a background thread. ``publish`` only
guarantees the record was enqueued; flush failures are logged and the
records dropped.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from pg_bridge.models import DeliveryStatus, DestinationKind
from pg_bridge.sinks.aws import get_boto3_client
from pg_bridge.sinks.base import BaseSink, SinkConfig, SinkFactory

# Kinesis accepts at most 500 records per PutRecords call
MAX_RECORDS_PER_CALL = 500


@dataclass
class StreamConfig(SinkConfig):
    """
    Configuration for the stream sink.

    Attributes:
        stream_name: Kinesis stream receiving every record.
        buffer_size: Records buffered before a size-triggered flush.
        flush_interval_seconds: Period of the background flush.
        region_name: AWS region of the stream.
        endpoint_url: Optional Kinesis endpoint override.
    """

    stream_name: str = ""
    buffer_size: int = MAX_RECORDS_PER_CALL
    flush_interval_seconds: float = 1.0
    region_name: str | None = None
    endpoint_url: str | None = None

    def __post_init__(self) -> None:
        if not self.name or self.name == "base-sink":
            self.name = "stream-sink"


@dataclass
class FlushStats:
    """Counters for stream flushes."""

    flushes: int = 0
    records_sent: int = 0
    records_failed: int = 0


class StreamSink(BaseSink):
    """
    Buffered Kinesis sink.

    The route target is used as the partition key; every record goes to
    the configured stream.
    """

    kind = DestinationKind.STREAM

    def __init__(self, config: StreamConfig, client: Any = None) -> None:
        super().__init__(config)
        self._stream_config = config
        self._client = client or get_boto3_client(
            "kinesis",
            region_name=config.region_name,
            endpoint_url=config.endpoint_url,
        )

        self._buffer: list[dict[str, Any]] = []
        self._buffer_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._flush_stats = FlushStats()

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def pending_count(self) -> int:
        """Number of buffered records."""
        with self._buffer_lock:
            return len(self._buffer)

    @property
    def flush_stats(self) -> FlushStats:
        """Flush statistics."""
        return self._flush_stats

    def start(self) -> None:
        """Start the interval flusher."""
        if self._thread is not None:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="pg-bridge-stream-flusher",
            daemon=True,
        )
        self._thread.start()
        self._logger.info(
            "stream_flusher_started",
            stream=self._stream_config.stream_name,
            buffer_size=self._stream_config.buffer_size,
            flush_interval=self._stream_config.flush_interval_seconds,
        )

    def close(self) -> None:
        """Stop the flusher and send whatever is still buffered."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self._stream_config.flush_interval_seconds + 5.0)
            self._thread = None
        self.flush()

    def _publish(self, channel: str, target: str, payload: str) -> DeliveryStatus:
        record = {"Data": payload.encode("utf-8"), "PartitionKey": target}

        with self._buffer_lock:
            self._buffer.append(record)
            full = len(self._buffer) >= self._stream_config.buffer_size

        if full:
            self.flush()
        return DeliveryStatus.ENQUEUED

    def flush(self) -> int:
        """
        Send all buffered records.

        Returns:
            Number of records the stream accepted.
        """
        with self._flush_lock:
            with self._buffer_lock:
                records = self._buffer
                self._buffer = []

            if not records:
                return 0

            sent = 0
            for start in range(0, len(records), MAX_RECORDS_PER_CALL):
                sent += self._put_records(records[start : start + MAX_RECORDS_PER_CALL])
            return sent

    def _put_records(self, records: list[dict[str, Any]]) -> int:
        """Send one PutRecords batch; failures are logged, never retried."""
        self._flush_stats.flushes += 1
        try:
            response = self._client.put_records(
                StreamName=self._stream_config.stream_name,
                Records=records,
            )
        except (BotoCoreError, ClientError) as e:
            self._flush_stats.records_failed += len(records)
            self._logger.error(
                "stream_flush_failed",
                stream=self._stream_config.stream_name,
                records=len(records),
                error=str(e),
            )
            return 0

        failed = int(response.get("FailedRecordCount", 0))
        sent = len(records) - failed
        self._flush_stats.records_sent += sent
        self._flush_stats.records_failed += failed

        if failed:
            self._logger.warning(
                "stream_records_rejected",
                stream=self._stream_config.stream_name,
                records=len(records),
                failed=failed,
            )
        else:
            self._logger.debug(
                "stream_flushed",
                stream=self._stream_config.stream_name,
                records=len(records),
            )
        return sent

    def _run(self) -> None:
        """Flush loop."""
        while not self._stop_event.wait(self._stream_config.flush_interval_seconds):
            try:
                self.flush()
            except Exception as e:
                self._logger.error("stream_flusher_error", error=str(e))

    def validate_config(self) -> list[str]:
        """Validate stream configuration."""
        errors = super().validate_config()
        if not self._stream_config.stream_name:
            errors.append("Stream name is required")
        if self._stream_config.buffer_size < 1:
            errors.append("buffer_size must be at least 1")
        if self._stream_config.flush_interval_seconds <= 0:
            errors.append("flush_interval_seconds must be positive")
        return errors


SinkFactory.register(DestinationKind.STREAM, StreamSink)
