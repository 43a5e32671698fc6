"""
Custom exception hierarchy for pg-bridge.

- BridgeError: Base exception for all bridge-specific errors
- ConfigurationError: Routing spec and settings problems (fatal at startup)
- SourceConnectionError: The notification source cannot be reached
- SubscriptionError: A channel could not be subscribed (fatal at startup)
- PublishError: A single sink call failed (non-fatal, notification dropped)

Each exception includes:
- error_code: Machine-readable error identifier
- context: Additional structured data for debugging
- is_retryable: Whether the operation can be retried
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes for categorization and monitoring."""

    # Configuration errors (1xxx)
    CONFIG_INVALID = "PGB_1001"
    CONFIG_MISSING = "PGB_1002"
    CONFIG_VALIDATION = "PGB_1003"
    CONFIG_NO_ROUTES = "PGB_1004"

    # Source errors (2xxx)
    SOURCE_CONNECTION_FAILED = "PGB_2001"
    SOURCE_RECONNECT_EXHAUSTED = "PGB_2002"
    SOURCE_SUBSCRIBE_FAILED = "PGB_2003"

    # Publish errors (3xxx)
    PUBLISH_FAILED = "PGB_3001"
    PUBLISH_HTTP_STATUS = "PGB_3002"

    # General errors (9xxx)
    UNKNOWN = "PGB_9999"


@dataclass
class BridgeError(Exception):
    """
    Base exception for all pg-bridge errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error identifier
        context: Additional structured data for debugging
        is_retryable: Whether the operation can be safely retried
        cause: Original exception that caused this error
    """

    message: str
    error_code: ErrorCode = ErrorCode.UNKNOWN
    context: dict[str, Any] = field(default_factory=dict)
    is_retryable: bool = False
    cause: BaseException | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.error_code.value}] {self.message}"]
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f" ({context_str})")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"context={self.context!r}, "
            f"is_retryable={self.is_retryable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "context": self.context,
            "is_retryable": self.is_retryable,
            "cause": str(self.cause) if self.cause else None,
        }


@dataclass
class ConfigurationError(BridgeError):
    """Raised when configuration is invalid or missing."""

    error_code: ErrorCode = ErrorCode.CONFIG_INVALID

    @classmethod
    def missing_file(cls, path: str) -> ConfigurationError:
        """Create error for missing configuration file."""
        return cls(
            message=f"Configuration file not found: {path}",
            error_code=ErrorCode.CONFIG_MISSING,
            context={"path": path},
        )

    @classmethod
    def missing_routes(cls) -> ConfigurationError:
        """Create error for an absent or empty routing spec."""
        return cls(
            message="PGB_ROUTES is mandatory to handle routing",
            error_code=ErrorCode.CONFIG_MISSING,
            context={"field": "routes"},
        )

    @classmethod
    def no_valid_routes(cls, spec: str) -> ConfigurationError:
        """Create error for a routing spec without a single valid entry."""
        truncated = spec[:200] + "..." if len(spec) > 200 else spec
        return cls(
            message="Routing spec contains no valid 'channel|target' entries",
            error_code=ErrorCode.CONFIG_NO_ROUTES,
            context={"spec": truncated},
        )

    @classmethod
    def validation_failed(cls, field: str, value: Any, reason: str) -> ConfigurationError:
        """Create error for validation failure."""
        return cls(
            message=f"Configuration validation failed for '{field}': {reason}",
            error_code=ErrorCode.CONFIG_VALIDATION,
            context={"field": field, "value": str(value), "reason": reason},
        )


@dataclass
class SourceConnectionError(BridgeError):
    """Raised when the notification source cannot be reached."""

    error_code: ErrorCode = ErrorCode.SOURCE_CONNECTION_FAILED
    is_retryable: bool = True

    @classmethod
    def connection_failed(
        cls, address: str, reason: str, cause: BaseException | None = None
    ) -> SourceConnectionError:
        """Create error for connection failure."""
        return cls(
            message=f"Failed to connect to {address}: {reason}",
            error_code=ErrorCode.SOURCE_CONNECTION_FAILED,
            context={"address": address, "reason": reason},
            cause=cause,
        )

    @classmethod
    def reconnect_exhausted(
        cls, attempts: int, cause: BaseException | None = None
    ) -> SourceConnectionError:
        """Create error for a listener that gave up reconnecting."""
        return cls(
            message=f"Lost connection to notification source after {attempts} reconnect attempts",
            error_code=ErrorCode.SOURCE_RECONNECT_EXHAUSTED,
            context={"attempts": attempts},
            is_retryable=False,
            cause=cause,
        )


@dataclass
class SubscriptionError(BridgeError):
    """Raised when a channel cannot be subscribed."""

    error_code: ErrorCode = ErrorCode.SOURCE_SUBSCRIBE_FAILED

    @classmethod
    def listen_failed(
        cls, channel: str, reason: str, cause: BaseException | None = None
    ) -> SubscriptionError:
        """Create error for a failed LISTEN."""
        return cls(
            message=f"Unable to listen on channel '{channel}': {reason}",
            error_code=ErrorCode.SOURCE_SUBSCRIBE_FAILED,
            context={"channel": channel, "reason": reason},
            cause=cause,
        )


@dataclass
class PublishError(BridgeError):
    """Raised when a single sink call fails."""

    error_code: ErrorCode = ErrorCode.PUBLISH_FAILED

    @classmethod
    def delivery_failed(
        cls,
        sink: str,
        target: str,
        reason: str,
        cause: BaseException | None = None,
    ) -> PublishError:
        """Create error for a failed delivery."""
        return cls(
            message=f"Unable to deliver payload via {sink} to {target}: {reason}",
            error_code=ErrorCode.PUBLISH_FAILED,
            context={"sink": sink, "target": target, "reason": reason},
            cause=cause,
        )

    @classmethod
    def http_status(cls, target: str, status_code: int) -> PublishError:
        """Create error for a non-2xx webhook response."""
        return cls(
            message=f"Unable to deliver payload to {target}: HTTP {status_code}",
            error_code=ErrorCode.PUBLISH_HTTP_STATUS,
            context={"target": target, "status_code": status_code},
        )
