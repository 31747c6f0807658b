"""Tests for the logging level system, formatters and JSONL output."""
from __future__ import annotations

import json
import logging

import pytest


def _record(msg="speak_done", **attrs) -> logging.LogRecord:
    record = logging.LogRecord("piper-server.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in attrs.items():
        setattr(record, k, v)
    return record


class TestLogLevelEnum:
    """Test LogLevel enum values."""

    def test_level_enum_values(self):
        from piper_server.core.logging import LogLevel

        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4

    def test_level_enum_ordering(self):
        from piper_server.core.logging import LogLevel

        assert LogLevel.MINIMAL < LogLevel.NORMAL < LogLevel.VERBOSE < LogLevel.DEBUG


class TestLevelCoercion:
    """Test level coercion from various input types."""

    @pytest.mark.parametrize("value,expected", [
        (1, 1), (2, 2), (3, 3), (4, 4),
        ("minimal", 1), ("NORMAL", 2), ("verbose", 3), ("debug", 4),
        ("3", 3), ("INFO", 2), ("WARNING", 1), ("trace", 4),
        (logging.WARNING, 1), (logging.INFO, 2), (logging.DEBUG, 4),
        ("nonsense", 2), (None, 2),
    ])
    def test_coerce(self, value, expected):
        from piper_server.core.logging import coerce_level

        assert coerce_level(value) == expected


class TestJsonlFormatter:
    def test_fields(self):
        from piper_server.core.logging import JsonlFormatter

        line = JsonlFormatter().format(_record(
            tag="SUCCESS",
            request_id="abc123",
            numeric_level=2,
            seconds=0.25,
            event=None,
            extra_data={"voice": "en_US-lessac-medium"},
        ))
        payload = json.loads(line)

        assert payload["message"] == "speak_done"
        assert payload["tag"] == "SUCCESS"
        assert payload["request_id"] == "abc123"
        assert payload["seconds"] == 0.25
        assert payload["extra"] == {"voice": "en_US-lessac-medium"}
        assert "event" not in payload

    def test_plain_record_defaults(self):
        from piper_server.core.logging import JsonlFormatter

        payload = json.loads(JsonlFormatter().format(_record("hello")))
        assert payload["request_id"] == "-"
        assert payload["level"] == 2
        assert payload["tag"] == "INFO"


class TestConsoleFormatter:
    def test_no_color(self):
        from piper_server.core.logging import ColoredConsoleFormatter

        line = ColoredConsoleFormatter(use_colors=False).format(_record(
            tag="INFO", request_id="rid1", seconds=1.5, extra_data={"voice": "v"},
        ))
        assert "\033[" not in line
        assert "(rid1)" in line
        assert "speak_done" in line
        assert "1.500s" in line
        assert "voice=v" in line

    def test_color(self):
        from piper_server.core.logging import ColoredConsoleFormatter, Colors

        line = ColoredConsoleFormatter(use_colors=True).format(_record(tag="FAIL"))
        assert Colors.BRIGHT_RED in line
        assert Colors.RESET in line

    def test_supports_color_env(self, monkeypatch):
        from piper_server.core.logging import supports_color

        monkeypatch.setenv("PIPER_SERVER_NO_COLOR", "1")
        assert supports_color() is False
        monkeypatch.delenv("PIPER_SERVER_NO_COLOR")
        monkeypatch.setenv("NO_COLOR", "yes")
        assert supports_color() is False


class TestRequestId:
    def test_default_and_set(self):
        import contextvars

        from piper_server.core.logging import get_request_id, set_request_id

        def inner():
            assert get_request_id() == "-"
            set_request_id("r-42")
            return get_request_id()

        assert contextvars.Context().run(inner) == "r-42"


class TestFilePersistence:
    """configure_logging() writes JSONL when a log directory is configured."""

    def test_jsonl_file(self, tmp_path, monkeypatch):
        from piper_server.core.logging import configure_logging, get_logger, info, set_request_id

        monkeypatch.setenv("PIPER_SERVER_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("PIPER_SERVER_JSONL_FILE", "test.jsonl")
        monkeypatch.setenv("PIPER_SERVER_LOG_LEVEL", "2")
        monkeypatch.setenv("PIPER_SERVER_SETTINGS", str(tmp_path / "absent.yaml"))

        try:
            configure_logging(force=True)
            set_request_id("persist-1")
            info(get_logger("piper-server.test"), "persisted", voice="en_US-test")
            for handler in logging.getLogger().handlers:
                handler.flush()

            lines = (tmp_path / "test.jsonl").read_text(encoding="utf-8").splitlines()
            payload = json.loads(lines[-1])
            assert payload["message"] == "persisted"
            assert payload["request_id"] == "persist-1"
            assert payload["extra"] == {"voice": "en_US-test"}
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            monkeypatch.undo()
            configure_logging(force=True)

    def test_level_filters(self, tmp_path, monkeypatch):
        from piper_server.core.logging import configure_logging, get_logger, get_level, verbose

        monkeypatch.setenv("PIPER_SERVER_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("PIPER_SERVER_LOG_LEVEL", "MINIMAL")
        monkeypatch.setenv("PIPER_SERVER_SETTINGS", str(tmp_path / "absent.yaml"))

        try:
            configure_logging(force=True)
            assert get_level() == 1
            verbose(get_logger("piper-server.test"), "hidden")
            for handler in logging.getLogger().handlers:
                handler.flush()
            assert not (tmp_path / "piper-server.jsonl").exists()
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            monkeypatch.undo()
            configure_logging(force=True)
