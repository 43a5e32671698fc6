"""
Configuration management for the bridge.

Settings come from PGB_* environment variables with an optional YAML file
underneath. Nested sections use a double underscore, e.g.
``PGB_SINK__FAMILY=stream``.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pg_bridge.exceptions import ConfigurationError
from pg_bridge.models import DestinationKind


class ListenerConfig(BaseModel):
    """Configuration for the Postgres notification listener."""

    min_reconnect_interval_seconds: float = Field(
        default=10.0, description="Initial delay before a reconnect attempt"
    )
    max_reconnect_interval_seconds: float = Field(
        default=60.0, description="Upper bound for the reconnect backoff"
    )
    max_reconnect_attempts: int = Field(
        default=5, description="Reconnect attempts before the listener fails"
    )
    poll_timeout_seconds: float = Field(
        default=5.0, description="How long a single wait for notifications may block"
    )
    connect_timeout_seconds: int = Field(default=10, description="Driver connect timeout")


class SinksConfig(BaseModel):
    """Configuration for delivery sinks."""

    family: DestinationKind = Field(
        default=DestinationKind.TOPIC,
        description="Non-HTTP sink family for this deployment (topic or stream)",
    )
    aws_region: str | None = Field(default=None, description="AWS region for SNS/Kinesis")
    endpoint_url: str | None = Field(default=None, description="Override AWS endpoint URL")
    stream_name: str | None = Field(default=None, description="Kinesis stream name")
    stream_buffer_size: int = Field(default=500, description="Records buffered before a flush")
    stream_flush_interval_seconds: float = Field(
        default=1.0, description="Maximum time a record waits in the buffer"
    )
    webhook_timeout_seconds: float = Field(default=30.0, description="Webhook request timeout")
    webhook_headers: dict[str, str] = Field(
        default_factory=dict, description="Extra headers sent with every webhook POST"
    )


class DispatchConfig(BaseModel):
    """Configuration for the concurrent dispatcher."""

    max_workers: int = Field(default=16, description="Concurrent sink calls")
    max_pending: int = Field(
        default=1000, description="In-flight plus queued dispatches before new ones are dropped"
    )


class BatchConfig(BaseModel):
    """Configuration for the optional batching stage."""

    enabled: bool = Field(default=True, description="Buffer events before dispatching")


class HealthConfig(BaseModel):
    """Configuration for the health endpoint."""

    enabled: bool = Field(default=True, description="Serve the health endpoint")
    host: str = Field(default="0.0.0.0", description="Host to bind to")
    interval_seconds: float = Field(default=5.0, description="Source ping interval")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="plain", description="Log format (json, plain)")
    file: str | None = Field(default=None, description="JSONL log directory (None disables)")
    max_bytes: int = Field(default=10 * 1024 * 1024, description="Size before a log file rotates")
    backup_count: int = Field(default=5, description="Rotated log files to keep")


class Config(BaseSettings):
    """Main configuration for the bridge."""

    model_config = SettingsConfigDict(
        env_prefix="PGB_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    routes: str = Field(default="", description="Routing spec: 'channel|target;...'")
    postgresql_url: str = Field(default="", description="Notification source URI")
    max_queuesize: int = Field(default=50, description="BatchQueue capacity")
    health_path: str = Field(default="/health", description="Health endpoint path")
    health_port: int = Field(default=5000, description="Health endpoint port")

    listener: ListenerConfig = Field(default_factory=ListenerConfig)
    sink: SinksConfig = Field(default_factory=SinksConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Config:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError.missing_file(str(path))

        with path.open() as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls, config_path: str | None = None) -> Config:
        """
        Load configuration with precedence:
        1. Explicit values from the config file
        2. Environment variables
        3. Defaults (lowest)
        """
        if config_path is None:
            config_path = os.getenv("PGB_CONFIG")
            if config_path is not None and not Path(config_path).exists():
                raise ConfigurationError.missing_file(config_path)

        if config_path is None:
            for candidate in [
                "pg-bridge.yaml",
                "pg-bridge.yml",
                "config/pg-bridge.yaml",
            ]:
                if Path(candidate).exists():
                    config_path = candidate
                    break

        if config_path:
            return cls.from_yaml(config_path)

        return cls()

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with path.open("w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)

    def validate_for_startup(self) -> None:
        """
        Check the settings the bridge cannot start without.

        Raises:
            ConfigurationError: If a mandatory setting is missing or inconsistent.
        """
        if not self.routes.strip():
            raise ConfigurationError.missing_routes()
        if not self.postgresql_url:
            raise ConfigurationError.validation_failed(
                "postgresql_url", self.postgresql_url, "PGB_POSTGRESQL_URL is mandatory"
            )
        if self.sink.family == DestinationKind.WEBHOOK:
            raise ConfigurationError.validation_failed(
                "sink.family", self.sink.family.value, "must be 'topic' or 'stream'"
            )
        if self.sink.family == DestinationKind.STREAM and not self.sink.stream_name:
            raise ConfigurationError.validation_failed(
                "sink.stream_name", None, "required when sink.family is 'stream'"
            )
        if self.max_queuesize < 1:
            raise ConfigurationError.validation_failed(
                "max_queuesize", self.max_queuesize, "must be at least 1"
            )
        if self.dispatch.max_workers < 1:
            raise ConfigurationError.validation_failed(
                "dispatch.max_workers", self.dispatch.max_workers, "must be at least 1"
            )
        if self.dispatch.max_pending < 1:
            raise ConfigurationError.validation_failed(
                "dispatch.max_pending", self.dispatch.max_pending, "must be at least 1"
            )


# Global config instance, only touched by the process entry point
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
