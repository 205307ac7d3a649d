"""Tests for scrubjay.core.logging."""

from __future__ import annotations

import io
import logging
import sys

import orjson

from scrubjay.core.logging import JsonFormatter, configure_logging


class TestJsonFormatter:
    def test_basic_fields(self) -> None:
        record = logging.makeLogRecord(
            {"msg": "Marked %d items", "args": (3,), "levelname": "INFO", "name": "scrubjay.dispatch"}
        )
        payload = orjson.loads(JsonFormatter().format(record))
        assert payload["message"] == "Marked 3 items"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "scrubjay.dispatch"
        assert "timestamp" in payload

    def test_extra_attributes_included(self) -> None:
        record = logging.makeLogRecord({"msg": "sent", "channel_id": "c1"})
        payload = orjson.loads(JsonFormatter().format(record))
        assert payload["channel_id"] == "c1"

    def test_exception_included(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.makeLogRecord({"msg": "failed", "exc_info": sys.exc_info()})
        payload = orjson.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in payload["exception"]


class TestConfigureLogging:
    def test_console_output(self) -> None:
        stream = io.StringIO()
        configure_logging("DEBUG", "console", stream=stream)
        logging.getLogger("scrubjay.test").debug("hello")
        assert "scrubjay.test: hello" in stream.getvalue()

    def test_json_output(self) -> None:
        stream = io.StringIO()
        configure_logging("INFO", "json", stream=stream)
        logging.getLogger("scrubjay.test").info("hello")
        assert orjson.loads(stream.getvalue().strip())["message"] == "hello"

    def test_level_filters(self) -> None:
        stream = io.StringIO()
        configure_logging("WARNING", "console", stream=stream)
        logging.getLogger("scrubjay.test").info("quiet")
        assert stream.getvalue() == ""

    def test_reconfigure_replaces_handler(self) -> None:
        configure_logging("INFO", "console", stream=io.StringIO())
        configure_logging("INFO", "json", stream=io.StringIO())
        assert len(logging.getLogger("scrubjay").handlers) == 1
