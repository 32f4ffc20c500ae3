"""Tests for structured logging setup."""

import json

import pytest
import structlog

from py_lloyd.logging_config import configure_logging


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    """Test logging configuration."""

    def test_json_output(self, reset_structlog, capsys):
        """Test that events are rendered as JSON with level and timestamp."""
        configure_logging("DEBUG", "json")
        structlog.get_logger("py_lloyd.test").info("Relaxation pass complete", iteration=1)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "Relaxation pass complete"
        assert event["iteration"] == 1
        assert event["level"] == "info"
        assert "timestamp" in event

    def test_level_filters_events(self, reset_structlog, capsys):
        """Test that events below the configured level are dropped."""
        configure_logging("WARNING", "json")
        structlog.get_logger("py_lloyd.test").info("hidden")

        assert "hidden" not in capsys.readouterr().err

    @pytest.mark.parametrize("level,fmt", [("LOUD", "json"), ("INFO", "xml")])
    def test_invalid_arguments(self, level, fmt):
        """Test that unknown levels and formats raise."""
        with pytest.raises(ValueError):
            configure_logging(level, fmt)
