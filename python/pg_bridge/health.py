"""
Health check endpoint.

Polls the listener's ping on a fixed interval and serves the last result
over HTTP. Only upstream connectivity is reported; delivery outcomes are
not part of the health status.
"""

from __future__ import annotations

import http.server
import json
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

import structlog

from pg_bridge.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


class HealthStatus(str, Enum):
    """Health status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class MonitorConfig:
    """
    Configuration for the health monitor.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        path: URL path for the health endpoint.
        interval_seconds: How often the probe runs.
        check_name: Name of the probe in the response.
        enabled: Whether the endpoint is served.
    """

    host: str = "0.0.0.0"
    port: int = 5000
    path: str = "/health"
    interval_seconds: float = 5.0
    check_name: str = "postgres"
    enabled: bool = True


class HealthMonitor:
    """Periodic probe plus a small HTTP server exposing its result."""

    def __init__(self, config: MonitorConfig, probe: Callable[[], bool]) -> None:
        """
        Initialize the monitor.

        Args:
            config: Monitor configuration.
            probe: Returns True when the upstream source is alive.
        """
        self._config = config
        self._probe = probe
        self._logger = logger.bind(component="health-monitor")

        self._healthy = False
        self._last_error: str | None = None
        self._last_checked: datetime | None = None
        self._state_lock = threading.Lock()

        self._stop_event = threading.Event()
        self._poller: threading.Thread | None = None
        self._server: http.server.ThreadingHTTPServer | None = None
        self._server_thread: threading.Thread | None = None

    @property
    def server_address(self) -> tuple[str, int] | None:
        """Bound address of the HTTP server, once started."""
        if self._server is None:
            return None
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def check(self) -> bool:
        """Run the probe once and record the result."""
        error: str | None = None
        try:
            healthy = bool(self._probe())
        except Exception as e:
            healthy = False
            error = str(e)

        with self._state_lock:
            changed = healthy != self._healthy
            self._healthy = healthy
            self._last_error = error
            self._last_checked = datetime.now(tz=timezone.utc)

        if changed:
            log = self._logger.info if healthy else self._logger.warning
            log("health_changed", check=self._config.check_name, healthy=healthy, error=error)
        return healthy

    def get_health(self) -> dict[str, Any]:
        """
        Get current health status.

        Returns:
            Health status dictionary.
        """
        with self._state_lock:
            healthy = self._healthy
            check: dict[str, Any] = {
                "healthy": healthy,
                "last_checked": self._last_checked.isoformat() if self._last_checked else None,
            }
            if self._last_error:
                check["error"] = self._last_error

        status = HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY
        return {
            "status": status.value,
            "checks": {self._config.check_name: check},
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        }

    def start(self) -> None:
        """
        Start the probe loop and the HTTP server.

        Raises:
            ConfigurationError: If the server cannot bind its address.
        """
        if not self._config.enabled:
            self._logger.info("health_check_disabled")
            return

        try:
            self._server = http.server.ThreadingHTTPServer(
                (self._config.host, self._config.port),
                self._create_handler(),
            )
        except OSError as e:
            raise ConfigurationError.validation_failed(
                "health_port", f"{self._config.host}:{self._config.port}", str(e)
            ) from e

        self.check()
        self._stop_event.clear()
        self._poller = threading.Thread(
            target=self._run,
            name="pg-bridge-health-poller",
            daemon=True,
        )
        self._poller.start()

        self._server_thread = threading.Thread(
            target=self._server.serve_forever,
            name="pg-bridge-health-server",
            daemon=True,
        )
        self._server_thread.start()

        self._logger.info(
            "health_check_started",
            host=self._config.host,
            port=self._config.port,
            path=self._config.path,
            interval=self._config.interval_seconds,
        )

    def stop(self) -> None:
        """Stop the probe loop and the HTTP server."""
        self._stop_event.set()

        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None

        for thread in (self._server_thread, self._poller):
            if thread:
                thread.join(timeout=5.0)
        self._server_thread = None
        self._poller = None

        self._logger.info("health_check_stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self._config.interval_seconds):
            self.check()

    def _create_handler(self) -> type[http.server.BaseHTTPRequestHandler]:
        """Create HTTP request handler."""
        monitor = self
        path = self._config.path

        class HealthHandler(http.server.BaseHTTPRequestHandler):
            """HTTP handler for the health endpoint."""

            def log_message(self, format: str, *args: Any) -> None:
                """Suppress default logging."""

            def do_GET(self) -> None:
                if urlsplit(self.path).path != path:
                    self.send_error(404, "Not Found")
                    return

                health = monitor.get_health()
                status_code = 200 if health["status"] == HealthStatus.HEALTHY.value else 503
                body = json.dumps(health).encode("utf-8")
                self.send_response(status_code)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

        return HealthHandler
