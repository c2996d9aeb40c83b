"""Tests for the context logger."""
import io

import pytest

from dinoe.errors import ToolError, ToolErrorKind
from dinoe.utils.logger import LogLevel, Logger, parse_log_level, set_default_level


@pytest.fixture(autouse=True)
def clean_levels(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    yield
    set_default_level(None)


def test_parse_log_level():
    assert parse_log_level("debug") is LogLevel.DEBUG
    assert parse_log_level(" WARN ") is LogLevel.WARNING
    assert parse_log_level("nonsense") is LogLevel.INFO
    assert parse_log_level(None) is LogLevel.INFO


class TestLogger:

    def test_records_carry_level_and_context(self):
        stream = io.StringIO()
        logger = Logger("Agent", stream=stream)
        logger.set_level("info")

        logger.info("Turn started")

        output = stream.getvalue()
        assert "[INFO]" in output
        assert "[Agent] Turn started" in output

    def test_threshold_hides_lower_levels(self):
        stream = io.StringIO()
        logger = Logger("Agent", stream=stream)
        logger.set_level(LogLevel.WARNING)

        logger.debug("hidden")
        logger.info("hidden too")
        logger.warning("shown")

        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()

    def test_child_context_and_level(self):
        stream = io.StringIO()
        parent = Logger("Agent", stream=stream)
        parent.set_level("error")

        child = parent.child("LoopGuard")
        child.warning("suppressed")
        child.error("boom")

        assert "suppressed" not in stream.getvalue()
        assert "[Agent:LoopGuard] boom" in stream.getvalue()

    def test_error_attaches_exception_kind(self):
        stream = io.StringIO()
        logger = Logger("Tools", stream=stream)

        logger.error("Tool failed", ToolError(ToolErrorKind.TIMEOUT, "too slow"))

        output = stream.getvalue()
        assert '"error_type": "ToolError"' in output
        assert '"error_kind": "timeout"' in output

    def test_data_is_dumped_as_json(self):
        stream = io.StringIO()
        logger = Logger("Provider", stream=stream)
        logger.set_level("debug")

        logger.debug("Sending request", {"messages": 7})

        assert '"messages": 7' in stream.getvalue()


class TestDefaultLevel:

    def test_applies_to_existing_loggers(self):
        stream = io.StringIO()
        logger = Logger("Provider", stream=stream)

        set_default_level("warning")
        logger.info("hidden")
        logger.warning("shown")

        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()

    def test_environment_is_read_at_write_time(self, monkeypatch):
        stream = io.StringIO()
        logger = Logger("Memory", stream=stream)

        monkeypatch.setenv("LOG_LEVEL", "debug")
        logger.debug("visible")

        assert "visible" in stream.getvalue()

    def test_own_level_wins(self):
        stream = io.StringIO()
        logger = Logger("Main", stream=stream)
        logger.set_level("debug")

        set_default_level(LogLevel.ERROR)
        logger.debug("still shown")

        assert "still shown" in stream.getvalue()
        assert Logger("Other").level is LogLevel.ERROR
