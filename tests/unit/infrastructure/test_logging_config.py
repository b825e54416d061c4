"""
Unit tests for structured logging setup.
"""

import json

import pytest
import structlog

from macro_analysis.infrastructure.logging_config import configure_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_json_output(self, capsys) -> None:
        configure_logging("INFO", json_output=True)

        structlog.get_logger("test").info("Cache hit", fingerprint="abc")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "Cache hit"
        assert event["fingerprint"] == "abc"
        assert event["level"] == "info"
        assert "timestamp" in event

    def test_level_filtering(self, capsys) -> None:
        configure_logging("WARNING", json_output=True)

        structlog.get_logger("test").info("quiet")

        assert "quiet" not in capsys.readouterr().out

    def test_unknown_level_defaults_to_info(self, capsys) -> None:
        configure_logging("CHATTY", json_output=True)

        structlog.get_logger("test").info("visible")

        assert "visible" in capsys.readouterr().out
