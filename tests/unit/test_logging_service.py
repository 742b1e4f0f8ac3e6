"""Tests for logging service configuration."""

import logging
import sys

from src.services.config import Settings
from src.services.logging import parse_log_level, setup_server_logging


class TestServerLogging:
    """Test server logging configuration."""

    def setup_method(self):
        """Save original handlers before each test."""
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        """Restore original handlers after each test."""
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)

    def test_creates_log_directory(self, tmp_path):
        log_file = tmp_path / "nested" / "billing.log"

        setup_server_logging(str(log_file), settings=Settings(_env_file=None))

        assert log_file.parent.exists()

    def test_creates_stdout_and_file_handlers(self, tmp_path):
        setup_server_logging(str(tmp_path / "billing.log"), settings=Settings(_env_file=None))

        handler_types = {type(h) for h in self.root_logger.handlers}
        assert len(self.root_logger.handlers) == 2
        assert logging.FileHandler in handler_types
        assert any(getattr(h, "stream", None) is sys.stdout for h in self.root_logger.handlers)

    def test_level_comes_from_settings(self, tmp_path):
        settings = Settings(_env_file=None, log_level="warning")

        setup_server_logging(str(tmp_path / "billing.log"), settings=settings)

        assert self.root_logger.level == logging.WARNING

    def test_log_file_defaults_to_settings(self, tmp_path):
        log_file = tmp_path / "from_settings.log"
        settings = Settings(_env_file=None, log_file=str(log_file))

        setup_server_logging(settings=settings)
        logging.getLogger("src.services.payment_service").info("Payment created")
        for handler in self.root_logger.handlers:
            handler.flush()

        assert "src.services.payment_service - INFO - Payment created" in log_file.read_text()

    def test_parse_log_level(self):
        assert parse_log_level("DEBUG") == logging.DEBUG
        assert parse_log_level("error") == logging.ERROR
        assert parse_log_level("nonsense") == logging.INFO
        assert parse_log_level(None) == logging.INFO
