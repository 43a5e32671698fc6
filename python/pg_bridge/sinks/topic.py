"""
Topic sink.

Publishes each payload as the message body of one SNS publish call to
the topic ARN named by the route.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from pg_bridge.exceptions import PublishError
from pg_bridge.models import DeliveryStatus, DestinationKind
from pg_bridge.sinks.aws import get_boto3_client
from pg_bridge.sinks.base import BaseSink, SinkConfig, SinkFactory


@dataclass
class TopicConfig(SinkConfig):
    """
    Configuration for the topic sink.

    Attributes:
        region_name: AWS region of the topics.
        endpoint_url: Optional SNS endpoint override.
    """

    region_name: str | None = None
    endpoint_url: str | None = None

    def __post_init__(self) -> None:
        if not self.name or self.name == "base-sink":
            self.name = "topic-sink"


class TopicSink(BaseSink):
    """Delivers payloads to SNS topics, one publish call per notification."""

    kind = DestinationKind.TOPIC

    def __init__(self, config: TopicConfig | None = None, client: Any = None) -> None:
        config = config or TopicConfig()
        super().__init__(config)
        self._topic_config = config
        self._client = client or get_boto3_client(
            "sns",
            region_name=config.region_name,
            endpoint_url=config.endpoint_url,
        )

    def _publish(self, channel: str, target: str, payload: str) -> DeliveryStatus:
        try:
            response = self._client.publish(TopicArn=target, Message=payload)
        except (BotoCoreError, ClientError) as e:
            raise PublishError.delivery_failed(self.name, target, str(e), cause=e) from e

        self._logger.debug(
            "topic_published",
            channel=channel,
            destination=target,
            message_id=response.get("MessageId"),
        )
        return DeliveryStatus.DELIVERED


SinkFactory.register(DestinationKind.TOPIC, TopicSink)
