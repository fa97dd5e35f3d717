"""
Tests for Logging and Environment Loading

Tests for filmflow/core/logging_config.py and filmflow/core/env_loader.py
"""

import logging

import pytest

from filmflow.core import env_loader
from filmflow.core.env_loader import get_api_key, get_hubspot_api_key
from filmflow.core.logging_config import (
    LogLevel,
    get_logger,
    level_for_flags,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    """Put the default filmflow logging back after the test."""
    yield
    setup_logging()


class TestLogging:
    """Tests for logger setup."""

    def test_logger_names(self):
        """Test component loggers live under the filmflow root."""
        assert get_logger("pipeline").name == "filmflow.pipeline"
        assert get_logger("filmflow.api").name == "filmflow.api"

    @pytest.mark.parametrize("verbose,debug,expected", [
        (False, False, LogLevel.WARNING),
        (True, False, LogLevel.INFO),
        (True, True, LogLevel.DEBUG),
    ])
    def test_level_for_flags(self, verbose, debug, expected):
        """Test CLI flags map to levels."""
        assert level_for_flags(verbose, debug) == expected

    def test_log_file(self, temp_dir, restore_logging):
        """Test records are written to the requested file."""
        log_file = temp_dir / "logs" / "run.log"
        setup_logging(level=LogLevel.INFO, log_file=log_file)

        get_logger("test").info("stage scenes completed")
        for handler in logging.getLogger("filmflow").handlers:
            handler.flush()

        assert "stage scenes completed" in log_file.read_text(encoding="utf-8")

    def test_library_loggers_quieted(self, restore_logging):
        """Test HTTP client chatter is held at WARNING."""
        setup_logging(level=LogLevel.INFO)

        assert logging.getLogger("httpx").level == logging.WARNING


class TestApiKeys:
    """Tests for credential lookup."""

    def test_primary_key(self, monkeypatch):
        """Test the primary variable wins."""
        monkeypatch.setenv("FILMFLOW_TEST_KEY", "primary")
        monkeypatch.setenv("FILMFLOW_TEST_ALT", "alt")

        assert get_api_key("FILMFLOW_TEST_KEY", ["FILMFLOW_TEST_ALT"]) == "primary"

    def test_fallback_key(self, monkeypatch):
        """Test alternate names are tried in order."""
        monkeypatch.delenv("HUBSPOT_API_KEY", raising=False)
        monkeypatch.setenv("HUBSPOT_ACCESS_TOKEN", "pat-123")

        assert get_hubspot_api_key() == "pat-123"

    def test_explicit_env_file(self, monkeypatch, temp_dir):
        """Test FILMFLOW_ENV_FILE selects the file that is loaded."""
        env_file = temp_dir / "filmflow.env"
        env_file.write_text("FILMFLOW_TEST_FROM_FILE=loaded\n", encoding="utf-8")
        monkeypatch.setattr(env_loader, "_env_loaded", False)
        monkeypatch.setenv("FILMFLOW_ENV_FILE", str(env_file))
        monkeypatch.delenv("FILMFLOW_TEST_FROM_FILE", raising=False)

        assert env_loader.ensure_env_loaded() is True
        assert get_api_key("FILMFLOW_TEST_FROM_FILE") == "loaded"
        monkeypatch.delenv("FILMFLOW_TEST_FROM_FILE")

    def test_missing_key(self, monkeypatch):
        """Test an unset key returns None."""
        monkeypatch.delenv("FILMFLOW_TEST_KEY", raising=False)

        assert get_api_key("FILMFLOW_TEST_KEY") is None
