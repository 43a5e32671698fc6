"""
Structured logging for the bridge.

structlog renders through the stdlib logging tree, so boto3 and psycopg2
records end up in the same output as the bridge's own events. Console
lines go to stderr as plain key=value text or JSON. When ``logging.file``
names a directory, every entry is also appended to a rotating JSONL file.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import MutableMapping
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from pg_bridge.config import LoggingConfig, get_config

if TYPE_CHECKING:
    from structlog.types import Processor

SERVICE_NAME = "pg-bridge"
LOG_FILE_NAME = "pg-bridge.jsonl"

# Libraries that log every request at INFO
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def _add_service(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Stamp each entry with the service name and process id."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("process", os.getpid())
    return event_dict


def _pre_chain() -> list[Processor]:
    """Processors shared by structlog events and foreign stdlib records."""
    return [
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _formatter(pre_chain: list[Processor], as_json: bool) -> structlog.stdlib.ProcessorFormatter:
    renderers: list[Processor]
    if as_json:
        renderers = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        renderers = [
            structlog.dev.ConsoleRenderer(
                colors=False,
                exception_formatter=structlog.dev.plain_traceback,
            )
        ]
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )


def log_file_path(log_dir: str | Path) -> Path:
    """Path of the JSONL file inside ``log_dir``."""
    return Path(log_dir) / LOG_FILE_NAME


def setup_logging(config: LoggingConfig | None = None, console: bool = True) -> None:
    """
    Configure structlog and the root logger.

    Args:
        config: Logging section; defaults to the process-wide config.
        console: Whether to write to stderr.
    """
    config = config or get_config().logging
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []
    if config.file:
        path = log_file_path(config.file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_formatter(pre_chain, as_json=True))
        handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            _formatter(pre_chain, as_json=config.format.lower() == "json")
        )
        handlers.append(console_handler)

    for handler in handlers:
        handler.setLevel(level)

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> Any:
    """
    Get a structured logger.

    Example:
        logger = get_logger(__name__)
        logger.info("notification_received", channel="orders")
    """
    return structlog.get_logger(name)
