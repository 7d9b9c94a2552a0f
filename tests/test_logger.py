"""
Unit tests for cube_shell.logger module.

Tests cover:
- FileHandler creation when file is specified
- StreamHandler on stderr only when console=True
- Log level setting
- Record format (timestamp, level, logger name) and the compact console form
- Transport loggers held at WARNING
"""

import logging
import sys
from pathlib import Path

import pytest

from cube_shell.config import LogConfig
from cube_shell.logger import CONSOLE_FORMAT, LOG_FORMAT, QUIET_LOGGERS, setup_logging


@pytest.fixture(autouse=True)
def reset_root_logger():
    yield
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)


def _stream_handlers():
    return [
        h
        for h in logging.getLogger().handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    ]


class TestSetupLoggingHandlers:
    """Tests for handler creation."""

    def test_file_handler_created_when_file_specified(self, tmp_path: Path):
        """Test that a FileHandler is created for config.file."""
        log_file = tmp_path / "shell.log"
        setup_logging(LogConfig(level="INFO", file=str(log_file), console=False))

        file_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1
        assert Path(file_handlers[0].baseFilename) == log_file
        assert file_handlers[0].encoding == "utf-8"

    def test_null_handler_when_file_empty_and_console_off(self):
        """Test that shell output is left alone when logging is not requested."""
        setup_logging(LogConfig(level="INFO", file="", console=False))

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.NullHandler)

    def test_file_handler_creates_parent_directories(self, tmp_path: Path):
        """Test that missing parent directories are created."""
        nested = tmp_path / "a" / "b" / "shell.log"
        setup_logging(LogConfig(level="INFO", file=str(nested), console=False))

        assert nested.parent.exists()

    def test_console_handler_uses_stderr(self):
        """Test that console logging goes to stderr, not stdout."""
        setup_logging(LogConfig(level="INFO", file="", console=True))

        handlers = _stream_handlers()
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    def test_existing_handlers_cleared(self, tmp_path: Path):
        """Test that calling setup twice does not duplicate handlers."""
        config = LogConfig(level="INFO", file=str(tmp_path / "x.log"), console=True)
        setup_logging(config)
        setup_logging(config)

        assert len(logging.getLogger().handlers) == 2


class TestSetupLoggingLevel:
    """Tests for log level setting."""

    @pytest.mark.parametrize(
        "level_str,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("info", logging.INFO),
            ("WARNING", logging.WARNING),
            ("INVALID_LEVEL", logging.INFO),
        ],
    )
    def test_log_level_set_correctly(self, level_str: str, expected_level: int):
        setup_logging(LogConfig(level=level_str, file="", console=False))

        assert logging.getLogger().level == expected_level


class TestSetupLoggingFormat:
    """Tests for the record format."""

    def test_records_include_level_name_and_message(self, tmp_path: Path):
        log_file = tmp_path / "fmt.log"
        setup_logging(LogConfig(level="DEBUG", file=str(log_file), console=False))

        logging.getLogger("cube_shell.cache").debug("Cache miss: /home/chris")
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = log_file.read_text(encoding="utf-8")
        assert " - DEBUG - cube_shell.cache - Cache miss: /home/chris" in content

    def test_log_format_constant(self):
        assert LOG_FORMAT == "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

    def test_console_uses_compact_format(self):
        setup_logging(LogConfig(level="INFO", file="", console=True))

        assert _stream_handlers()[0].formatter._fmt == CONSOLE_FORMAT

    def test_console_record_format(self):
        record = logging.LogRecord("cube_shell.cube_client", logging.WARNING, __file__, 1, "retrying", None, None)
        assert logging.Formatter(CONSOLE_FORMAT).format(record) == "[WARNING] cube_shell.cube_client: retrying"


class TestQuietLoggers:
    """Tests for transport logger levels."""

    def test_urllib3_held_at_warning_in_debug(self):
        setup_logging(LogConfig(level="DEBUG", file="", console=True))

        assert logging.getLogger("urllib3").level == logging.WARNING
        assert not logging.getLogger("urllib3.connectionpool").isEnabledFor(logging.DEBUG)

    def test_quiet_loggers_follow_higher_levels(self):
        setup_logging(LogConfig(level="ERROR", file="", console=False))

        assert logging.getLogger("urllib3").level == logging.ERROR
