"""
Webhook sink.

POSTs the raw notification payload to the route's URL with a JSON
content type. Non-2xx responses and transport failures are both
reported as "unable to deliver".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import structlog

from pg_bridge.exceptions import PublishError
from pg_bridge.models import DeliveryStatus, DestinationKind
from pg_bridge.sinks.base import BaseSink, SinkConfig, SinkFactory

logger = structlog.get_logger(__name__)


@dataclass
class WebhookConfig(SinkConfig):
    """
    Configuration for the webhook sink.

    Attributes:
        headers: Extra HTTP headers sent with every request.
        user_agent: User-Agent header value.
    """

    headers: dict[str, str] = field(default_factory=dict)
    user_agent: str = "pg-bridge/1.0"

    def __post_init__(self) -> None:
        if not self.name or self.name == "base-sink":
            self.name = "webhook-sink"


class WebhookSink(BaseSink):
    """Delivers payloads with one HTTP POST per notification."""

    kind = DestinationKind.WEBHOOK

    def __init__(self, config: WebhookConfig | None = None) -> None:
        config = config or WebhookConfig()
        super().__init__(config)
        self._webhook_config = config

    def _publish(self, channel: str, target: str, payload: str) -> DeliveryStatus:
        """
        POST the payload to ``target``.

        Raises:
            PublishError: On a non-2xx status or a connection failure.
        """
        request = Request(
            target,
            data=payload.encode("utf-8"),
            headers=self._build_headers(),
            method="POST",
        )

        try:
            with urlopen(request, timeout=self._webhook_config.timeout_seconds) as response:
                response.read()
                status_code = response.status
        except HTTPError as e:
            # urlopen raises for 4xx/5xx; the body is discarded either way
            raise PublishError.http_status(target, e.code) from e
        except URLError as e:
            raise PublishError.delivery_failed(
                self.name, target, str(e.reason), cause=e
            ) from e

        if not 200 <= status_code < 300:
            raise PublishError.http_status(target, status_code)

        self._logger.debug(
            "webhook_response",
            channel=channel,
            destination=target,
            status_code=status_code,
        )
        return DeliveryStatus.DELIVERED

    def _build_headers(self) -> dict[str, str]:
        """Build HTTP headers."""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self._webhook_config.user_agent,
        }
        headers.update(self._webhook_config.headers)
        return headers


SinkFactory.register(DestinationKind.WEBHOOK, WebhookSink)
