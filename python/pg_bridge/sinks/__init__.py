"""
Delivery sinks.

One sink per destination family:
- TopicSink: SNS publish, one call per notification
- WebhookSink: HTTP POST, one request per notification
- StreamSink: buffered Kinesis PutRecords

All sinks extend BaseSink and share its ``publish(channel, target, payload)``
contract.
"""

from pg_bridge.sinks.base import (
    BaseSink,
    SinkConfig,
    SinkFactory,
)
from pg_bridge.sinks.stream import (
    StreamConfig,
    StreamSink,
)
from pg_bridge.sinks.topic import (
    TopicConfig,
    TopicSink,
)
from pg_bridge.sinks.webhook import (
    WebhookConfig,
    WebhookSink,
)

__all__ = [
    "BaseSink",
    "SinkConfig",
    "SinkFactory",
    "StreamConfig",
    "StreamSink",
    "TopicConfig",
    "TopicSink",
    "WebhookConfig",
    "WebhookSink",
]
