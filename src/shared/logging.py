"""Structured JSON logging with trace_id support."""
from __future__ import annotations

import contextvars
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

TRACE_ID_HEADER = "X-Trace-ID"

# Context variable for trace_id; copied into build worker threads.
trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "trace_id", default=""
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, tagged with service and trace id."""

    def __init__(self, service_name: str = "unknown") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "service_name": self.service_name,
            "logger": record.name,
            "thread": record.threadName,
            "trace_id": trace_id_var.get(""),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])
        return json.dumps(log_entry)


def setup_logging(
    service_name: str,
    level: str = "INFO",
    extra_loggers: Iterable[str] = ("uvicorn.error",),
) -> logging.Logger:
    """Configure structured JSON logging for the daemon.

    Args:
        service_name: Name of the service for log entries; also the name of
            the returned logger.
        level: Log level string (e.g. "INFO", "DEBUG").
        extra_loggers: Third-party loggers that should share the JSON
            handler, so server lifecycle messages match the daemon's own.

    Returns:
        Configured logger instance.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter(service_name=service_name))
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(service_name)
    logger.setLevel(numeric_level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False

    for name in extra_loggers:
        extra = logging.getLogger(name)
        extra.handlers.clear()
        extra.addHandler(handler)
        extra.propagate = False

    return logger


class TraceIDMiddleware(BaseHTTPMiddleware):
    """Sets a trace_id per request, reusing the caller's when it sends one."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_trace_id = request.headers.get(TRACE_ID_HEADER) or str(uuid.uuid4())
        trace_id_var.set(request_trace_id)
        response = await call_next(request)
        response.headers[TRACE_ID_HEADER] = request_trace_id
        return response
