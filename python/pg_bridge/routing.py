"""
Static channel routing.

Parses the routing spec into an immutable channel -> destination table.
The spec is a single string: entries separated by ``;``, each entry
``channel|target``. Targets starting with ``http`` are webhooks; every
other target belongs to the deployment's non-HTTP sink family.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType

import structlog

from pg_bridge.exceptions import ConfigurationError
from pg_bridge.models import DestinationKind, DestinationRef, Route

logger = structlog.get_logger(__name__)

ENTRY_SEPARATOR = ";"
FIELD_SEPARATOR = "|"
HTTP_PREFIX = "http"


def classify(target: str, default_kind: DestinationKind) -> DestinationKind:
    """
    Classify a destination target.

    A target with an ``http``/``https`` prefix is a webhook. Anything else,
    including a non-URL string that happens to start with ``http``, falls
    to ``default_kind``.

    Args:
        target: Target string from the routing spec.
        default_kind: The configured non-HTTP sink family.

    Returns:
        Destination kind for the target.
    """
    if target.startswith(HTTP_PREFIX):
        return DestinationKind.WEBHOOK
    return default_kind


class RouteTable:
    """
    Immutable mapping of channel to route.

    Built once at startup; safe for unsynchronized concurrent reads.
    """

    def __init__(self, routes: Mapping[str, Route]) -> None:
        self._routes: Mapping[str, Route] = MappingProxyType(dict(routes))

    @classmethod
    def parse(
        cls,
        spec: str | None,
        default_kind: DestinationKind = DestinationKind.TOPIC,
    ) -> RouteTable:
        """
        Parse a routing spec.

        Entries that do not have exactly two fields are dropped with a
        warning. When a channel appears more than once the last entry wins.

        Args:
            spec: Routing spec, e.g. ``"orders|arn:topic;users|https://x/hook"``.
            default_kind: Kind assigned to non-HTTP targets.

        Returns:
            The parsed route table.

        Raises:
            ConfigurationError: If the spec is empty or has no valid entries.
        """
        if default_kind == DestinationKind.WEBHOOK:
            raise ConfigurationError.validation_failed(
                "default_kind", default_kind.value, "must be a non-HTTP family"
            )
        if not spec or not spec.strip():
            raise ConfigurationError.missing_routes()

        routes: dict[str, Route] = {}

        for position, entry in enumerate(spec.split(ENTRY_SEPARATOR)):
            fields = entry.split(FIELD_SEPARATOR)
            if len(fields) != 2:
                logger.warning(
                    "route_entry_dropped",
                    entry=entry,
                    position=position,
                    field_count=len(fields),
                )
                continue

            channel, target = fields
            if channel in routes:
                logger.debug(
                    "route_overridden",
                    channel=channel,
                    previous=routes[channel].destination.target,
                    target=target,
                )

            routes[channel] = Route(
                channel=channel,
                destination=DestinationRef(
                    kind=classify(target, default_kind),
                    target=target,
                ),
            )

        if not routes:
            raise ConfigurationError.no_valid_routes(spec)

        logger.info(
            "routes_loaded",
            count=len(routes),
            channels=list(routes),
        )
        return cls(routes)

    def lookup(self, channel: str) -> DestinationRef | None:
        """Resolve a channel; ``None`` means no route, which is not an error."""
        route = self._routes.get(channel)
        if route is None:
            return None
        return route.destination

    @property
    def channels(self) -> list[str]:
        """Routed channels in spec order."""
        return list(self._routes)

    @property
    def routes(self) -> Mapping[str, Route]:
        """Read-only view of the routes."""
        return self._routes

    def kinds(self) -> set[DestinationKind]:
        """Destination families referenced by at least one route."""
        return {route.destination.kind for route in self._routes.values()}

    def __len__(self) -> int:
        return len(self._routes)

    def __contains__(self, channel: object) -> bool:
        return channel in self._routes

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes.values())
