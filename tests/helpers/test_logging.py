"""Tests for logging configuration."""

import pytest

import logging

from src.helpers.logging import LOG_LEVELS, get_logger


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_returns_named_logger(self) -> None:
        """Test that get_logger returns a logger with the module name."""
        logger = get_logger("watchdog.test_module")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "watchdog.test_module"

    def test_same_name_returns_cached_instance(self) -> None:
        """Test that a second call returns the cached logger untouched."""
        logger1 = get_logger("watchdog.cached", log_level="DEBUG")
        logger2 = get_logger("watchdog.cached", log_level="ERROR")

        assert logger1 is logger2
        assert logger1.level == logging.DEBUG

    @pytest.mark.parametrize("level", sorted(LOG_LEVELS))
    def test_explicit_levels(self, level: str) -> None:
        """Test every supported level name."""
        logger = get_logger(f"watchdog.level_{level.lower()}", log_level=level)

        assert logger.level == LOG_LEVELS[level]

    def test_default_level_is_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the default level without environment override."""
        monkeypatch.delenv("WATCHDOG_LOG_LEVEL", raising=False)

        logger = get_logger("watchdog.default_level")

        assert logger.level == logging.INFO

    def test_level_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test WATCHDOG_LOG_LEVEL is used when no level is passed."""
        monkeypatch.setenv("WATCHDOG_LOG_LEVEL", "warning")

        logger = get_logger("watchdog.env_level")

        assert logger.level == logging.WARNING

    def test_color_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test WATCHDOG_LOG_COLOR switches to the colorlog formatter."""
        import colorlog

        monkeypatch.setenv("WATCHDOG_LOG_COLOR", "true")

        logger = get_logger("watchdog.env_color")

        assert isinstance(logger.handlers[-1].formatter, colorlog.ColoredFormatter)

    def test_invalid_level_raises(self) -> None:
        """Test that an invalid log level raises ValueError."""
        with pytest.raises(ValueError, match="Invalid log level"):
            get_logger("watchdog.invalid_level", log_level="VERBOSE")

    def test_invalid_handler_raises(self) -> None:
        """Test that an invalid handler raises ValueError."""
        with pytest.raises(ValueError, match="Invalid handler"):
            get_logger("watchdog.invalid_handler", log_handler="syslog")

    def test_plain_handler_writes_stdout(self) -> None:
        """Test the default handler is a plain stdout stream handler."""
        import sys

        logger = get_logger("watchdog.plain", log_color=False)

        handler = logger.handlers[-1]
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stdout

    def test_logger_can_log_messages(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a configured logger emits records at every level."""
        logger = get_logger("watchdog.messages", log_level="DEBUG")

        with caplog.at_level(logging.DEBUG, logger="watchdog.messages"):
            logger.debug("Block %s ingested", 100)
            logger.warning("Host %s unreachable", "10.0.0.2")

        messages = [record.getMessage() for record in caplog.records]
        assert "Block 100 ingested" in messages
        assert "Host 10.0.0.2 unreachable" in messages

    def test_stderr_handler(self) -> None:
        """Test the handler can write to stderr instead of stdout."""
        import sys

        logger = get_logger("watchdog.stderr", log_handler="stderr", log_color=False)

        assert logger.handlers[-1].stream is sys.stderr
