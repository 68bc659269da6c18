"""Test logging configuration."""

import io
import logging
import sys
from pathlib import Path

import structlog
from structlog.testing import capture_logs

from oob_probe.common.logging import get_logger, setup_logging


class TestLogging:
    """Test logging functionality."""

    def setup_method(self) -> None:
        """Setup before each test - reset logging configuration."""
        structlog.reset_defaults()
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    def teardown_method(self) -> None:
        setup_logging(level="INFO")

    def test_console_goes_to_stderr_by_default(self) -> None:
        """stdout is reserved for the control channel."""
        setup_logging()

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    def test_setup_logging_with_level(self) -> None:
        setup_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_custom_stream(self) -> None:
        stream = io.StringIO()
        setup_logging(stream=stream)

        get_logger("oob_probe.test").info("listener opened", port=4444)

        output = stream.getvalue()
        assert "listener opened" in output
        assert "port=4444" in output

    def test_json_format(self) -> None:
        stream = io.StringIO()
        setup_logging(json_format=True, stream=stream)

        get_logger("oob_probe.test").warning("tunnel failed", port=8080)

        output = stream.getvalue()
        assert '"event": "tunnel failed"' in output
        assert '"port": 8080' in output

    def test_get_logger_binds_context(self) -> None:
        setup_logging()

        # Capture before binding: bound loggers are cached on first use.
        with capture_logs() as entries:
            get_logger("test_module", port=4444, listener_id="abc").info("New connection")

        assert len(entries) == 1
        assert entries[0]["event"] == "New connection"
        assert entries[0]["port"] == 4444
        assert entries[0]["listener_id"] == "abc"

    def test_setup_logging_with_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "test.log"
        setup_logging(log_file=str(log_file))

        python_logger = logging.getLogger("test_file")
        python_logger.info("test message")

        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file.exists()
        assert "test message" in log_file.read_text()
