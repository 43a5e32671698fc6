"""Tests for logging module."""

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

from pg_bridge.config import Config, LoggingConfig, set_config
from pg_bridge.logging import (
    LOG_FILE_NAME,
    get_logger,
    log_file_path,
    setup_logging,
)


def setup_function() -> None:
    set_config(Config())


def teardown_function() -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers = []
    structlog.reset_defaults()


def json_lines(text: str) -> list[dict]:
    return [json.loads(line) for line in text.splitlines() if line.startswith("{")]


class TestSetupLogging:
    """Test logging setup."""

    def test_setup_logging_default(self):
        """Default setup uses the process-wide config."""
        setup_logging()
        logger = get_logger("test")
        assert logger is not None
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_sets_level(self):
        """Root logger level follows the config."""
        setup_logging(LoggingConfig(level="WARNING"))
        assert logging.getLogger().level == logging.WARNING

        setup_logging(LoggingConfig(level="debug"))
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        """An unrecognized level name is treated as INFO."""
        setup_logging(LoggingConfig(level="chatty"))
        assert logging.getLogger().level == logging.INFO

    def test_console_goes_to_stderr(self, capsys):
        """Plain console output is written to stderr."""
        setup_logging(LoggingConfig(format="plain"))
        get_logger("test_console").info("console_test_message")

        captured = capsys.readouterr()
        assert "console_test_message" in captured.err
        assert "console_test_message" not in captured.out

    def test_json_format(self, capsys):
        """JSON console lines carry the bound fields and service metadata."""
        setup_logging(LoggingConfig(format="json"))
        get_logger("test_json").info("json_test_message", channel="orders")

        entry = next(
            e for e in json_lines(capsys.readouterr().err) if e["event"] == "json_test_message"
        )
        assert entry["channel"] == "orders"
        assert entry["service"] == "pg-bridge"
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_stdlib_records_share_the_output(self, capsys):
        """Records from plain stdlib loggers are rendered too."""
        setup_logging(LoggingConfig(format="json"))
        logging.getLogger("psycopg2.test").warning("driver warning")

        entry = next(
            e for e in json_lines(capsys.readouterr().err) if e["event"] == "driver warning"
        )
        assert entry["logger"] == "psycopg2.test"
        assert entry["level"] == "warning"

    def test_no_file_handler_by_default(self):
        """JSONL files are only written when a directory is configured."""
        setup_logging(LoggingConfig())
        handlers = logging.getLogger().handlers
        assert all(not isinstance(h, logging.FileHandler) for h in handlers)

    def test_jsonl_file(self, tmp_path: Path):
        """Entries are appended to a rotating JSONL file."""
        setup_logging(LoggingConfig(file=str(tmp_path / "logs")), console=False)
        get_logger("test_file").info("file_test_message", destination="arn:topic")

        for handler in logging.getLogger().handlers:
            handler.flush()

        handler = logging.getLogger().handlers[0]
        assert isinstance(handler, RotatingFileHandler)
        assert handler.maxBytes == 10 * 1024 * 1024

        path = log_file_path(tmp_path / "logs")
        entry = next(
            e for e in json_lines(path.read_text()) if e["event"] == "file_test_message"
        )
        assert entry["destination"] == "arn:topic"
        assert entry["service"] == "pg-bridge"

    def test_aws_loggers_quieted(self):
        """AWS SDK loggers are limited to warnings."""
        setup_logging(LoggingConfig(level="DEBUG"))
        assert logging.getLogger("botocore").level == logging.WARNING


class TestLogFilePath:
    """Test log path helper."""

    def test_file_name(self):
        """The JSONL file lives directly in the directory."""
        assert log_file_path("/var/log") == Path("/var/log") / LOG_FILE_NAME
