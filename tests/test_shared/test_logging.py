"""Tests for structured JSON logging and the trace-id middleware."""
from __future__ import annotations

import json
import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.shared.logging import (
    JSONFormatter,
    TraceIDMiddleware,
    setup_logging,
    trace_id_var,
)


def _record(message: str, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        "build-daemon", logging.INFO, __file__, 10, message, None, exc_info
    )


class TestJSONFormatter:
    def test_emits_expected_fields(self):
        entry = json.loads(JSONFormatter("build-daemon").format(_record("hello")))
        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["service_name"] == "build-daemon"
        assert entry["logger"] == "build-daemon"
        assert "timestamp" in entry

    def test_includes_trace_id(self):
        token = trace_id_var.set("abc-123")
        try:
            entry = json.loads(JSONFormatter().format(_record("x")))
        finally:
            trace_id_var.reset(token)
        assert entry["trace_id"] == "abc-123"

    def test_includes_exception_text(self):
        try:
            raise ValueError("pipe exploded")
        except ValueError:
            import sys

            record = _record("failed", exc_info=sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert entry["exception"] == "pipe exploded"


class TestSetupLogging:
    def test_sets_level_and_single_handler(self):
        logger = setup_logging("test-daemon-logging", "debug")
        setup_logging("test-daemon-logging", "debug")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_unknown_level_falls_back_to_info(self):
        assert setup_logging("test-daemon-fallback", "chatty").level == logging.INFO

    def test_extra_loggers_share_the_handler(self):
        logger = setup_logging("test-daemon-extra", extra_loggers=("test.extra.server",))
        extra = logging.getLogger("test.extra.server")
        assert extra.handlers == logger.handlers
        assert extra.propagate is False


class TestTraceIDMiddleware:
    def _app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(TraceIDMiddleware)

        @app.get("/ping")
        async def _ping():
            return {"trace_id": trace_id_var.get()}

        return app

    def test_response_carries_generated_trace_id(self):
        resp = TestClient(self._app()).get("/ping")
        assert resp.headers["X-Trace-ID"] == resp.json()["trace_id"]
        assert resp.json()["trace_id"]

    def test_caller_trace_id_is_reused(self):
        resp = TestClient(self._app()).get("/ping", headers={"X-Trace-ID": "from-client"})
        assert resp.json()["trace_id"] == "from-client"
        assert resp.headers["X-Trace-ID"] == "from-client"
