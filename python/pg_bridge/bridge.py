"""
Process wiring for pg-bridge.

Builds the route table, sinks, dispatcher, optional batch queue, listener
and health monitor from a Config, then runs the single consumer loop:
every notification read from the listener is either buffered in the
batch queue or handed straight to the dispatcher.
"""

from __future__ import annotations

import argparse
import signal
import sys
from collections.abc import Mapping, Sequence

from botocore.exceptions import BotoCoreError
from pydantic import ValidationError

from pg_bridge import __version__
from pg_bridge.batch import BatchQueue
from pg_bridge.config import Config, SinksConfig, set_config
from pg_bridge.dispatcher import Dispatcher
from pg_bridge.exceptions import (
    BridgeError,
    ConfigurationError,
    SourceConnectionError,
)
from pg_bridge.health import HealthMonitor, MonitorConfig
from pg_bridge.listener import ListenerAdapter, ListenerState
from pg_bridge.logging import get_logger, setup_logging
from pg_bridge.models import DestinationKind, NotificationEvent
from pg_bridge.routing import RouteTable
from pg_bridge.sinks import (
    BaseSink,
    SinkConfig,
    SinkFactory,
    StreamConfig,
    TopicConfig,
    WebhookConfig,
)

logger = get_logger(__name__)

USAGE = """
    PG Bridge: Send Postgres notifications to SNS, Kinesis or a webhook.

    Usage:

      pg-bridge

    PGB_ROUTES and PGB_POSTGRESQL_URL env vars at least must be set.
    The health check defaults to HOST:5000/health.
"""

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1
EXIT_SOURCE_LOST = 2


def _sink_config(kind: DestinationKind, sink_config: SinksConfig) -> SinkConfig:
    """Translate the sink section into the config of one sink class."""
    if kind == DestinationKind.WEBHOOK:
        return WebhookConfig(
            timeout_seconds=sink_config.webhook_timeout_seconds,
            headers=dict(sink_config.webhook_headers),
        )
    if kind == DestinationKind.TOPIC:
        return TopicConfig(
            region_name=sink_config.aws_region,
            endpoint_url=sink_config.endpoint_url,
        )
    return StreamConfig(
        stream_name=sink_config.stream_name or "",
        buffer_size=sink_config.stream_buffer_size,
        flush_interval_seconds=sink_config.stream_flush_interval_seconds,
        region_name=sink_config.aws_region,
        endpoint_url=sink_config.endpoint_url,
    )


def build_sinks(config: Config, kinds: set[DestinationKind]) -> dict[DestinationKind, BaseSink]:
    """
    Create one sink per destination kind the routes use.

    Sink classes are looked up in the SinkFactory registry.

    Args:
        config: Bridge configuration.
        kinds: Destination kinds referenced by the route table.

    Returns:
        Started sink per destination kind.

    Raises:
        ConfigurationError: If a sink rejects its configuration.
    """
    sinks: dict[DestinationKind, BaseSink] = {}

    for kind in sorted(kinds, key=lambda k: k.value):
        try:
            sink = SinkFactory.create(kind, _sink_config(kind, config.sink))
        except BotoCoreError as e:
            # e.g. NoRegionError when no AWS region is configured
            raise ConfigurationError.validation_failed(
                "sink.aws_region", config.sink.aws_region, str(e)
            ) from e

        errors = sink.validate_config()
        if errors:
            raise ConfigurationError.validation_failed(
                f"sink.{kind.value}", sink.name, "; ".join(errors)
            )
        sinks[kind] = sink

    for sink in sinks.values():
        sink.start()
    return sinks


class Bridge:
    """The notification bridge: listener, batch queue, dispatcher and sinks."""

    def __init__(
        self,
        config: Config,
        listener: ListenerAdapter | None = None,
        sinks: Mapping[DestinationKind, BaseSink] | None = None,
        health: HealthMonitor | None = None,
    ) -> None:
        """
        Build every component from configuration.

        Args:
            config: Bridge configuration.
            listener: Optional listener (for testing).
            sinks: Optional sinks (for testing).
            health: Optional health monitor (for testing).

        Raises:
            ConfigurationError: If the routing spec is missing or invalid.
        """
        self.config = config
        self.routes = RouteTable.parse(config.routes, default_kind=config.sink.family)
        self.sinks = dict(sinks) if sinks is not None else build_sinks(config, self.routes.kinds())
        self.dispatcher = Dispatcher(self.routes, self.sinks, config.dispatch)

        self.batch: BatchQueue | None = None
        if config.batch.enabled:
            self.batch = BatchQueue(self.dispatcher.on_event, capacity=config.max_queuesize)

        self.listener = listener or ListenerAdapter(config.postgresql_url, config.listener)
        self.health = health or HealthMonitor(
            MonitorConfig(
                host=config.health.host,
                port=config.health_port,
                path=config.health_path,
                interval_seconds=config.health.interval_seconds,
                enabled=config.health.enabled,
            ),
            probe=self.listener.ping,
        )
        self._stopped = False

    def start(self) -> None:
        """
        Connect, subscribe to every routed channel and start the health check.

        Raises:
            SourceConnectionError: If the source is unreachable.
            SubscriptionError: If a channel cannot be subscribed.
        """
        self.listener.connect()
        self.listener.subscribe(self.routes.channels)
        self.health.start()
        logger.info(
            "bridge_started",
            channels=self.routes.channels,
            batching=self.batch is not None,
            batch_capacity=self.batch.capacity if self.batch else None,
            sinks=sorted(kind.value for kind in self.sinks),
        )

    def run(self) -> None:
        """
        Consume notifications until the listener is closed.

        Raises:
            SourceConnectionError: If the listener gave up reconnecting.
        """
        for event in self.listener.events():
            self.handle(event)

    def handle(self, event: NotificationEvent) -> None:
        """Pass one notification to the batch queue or the dispatcher."""
        logger.info(
            "notification_received",
            channel=event.channel,
            payload_size=event.payload_size,
        )
        if self.batch is not None:
            self.batch.enqueue(event)
        else:
            self.dispatcher.on_event(event)

    def stop(self) -> None:
        """Shut everything down without waiting for in-flight deliveries."""
        if self._stopped:
            return
        self._stopped = True

        self.listener.close()
        if self.batch is not None:
            self.batch.drain()
        self.health.stop()
        self.dispatcher.shutdown(wait=False)
        for sink in self.sinks.values():
            try:
                sink.close()
            except Exception as e:
                logger.error("sink_close_failed", sink=sink.name, error=str(e))
        logger.info("bridge_stopped")


def serve(config: Config) -> int:
    """
    Run the bridge and block until shutdown.

    Args:
        config: Bridge configuration.

    Returns:
        Process exit code.
    """
    bridge: Bridge | None = None
    try:
        config.validate_for_startup()
        bridge = Bridge(config)
        bridge.start()
    except BridgeError as e:
        logger.error("startup_failed", **e.to_dict())
        if bridge is not None:
            bridge.stop()
        return EXIT_STARTUP_FAILED

    def signal_handler(signum: int, _frame: object) -> None:
        logger.info("shutdown_signal_received", signal=signum)
        # May interrupt a poll holding the listener lock; teardown happens in bridge.stop()
        bridge.listener.request_stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        bridge.run()
    except SourceConnectionError as e:
        logger.error("source_lost", **e.to_dict())
        return EXIT_SOURCE_LOST
    finally:
        bridge.stop()

    if bridge.listener.state == ListenerState.FAILED:
        return EXIT_SOURCE_LOST
    return EXIT_OK


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(
        prog="pg-bridge",
        description=USAGE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Get the version",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to a YAML config file (overrides PGB_CONFIG)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the bridge."""
    args = parse_args(argv)

    try:
        config = Config.load(args.config)
    except (ConfigurationError, ValidationError) as e:
        print(f"pg-bridge: invalid configuration: {e}", file=sys.stderr)
        return EXIT_STARTUP_FAILED

    set_config(config)
    setup_logging(config.logging)
    logger.info("starting_pg_bridge", version=__version__)
    return serve(config)


if __name__ == "__main__":
    sys.exit(main())
