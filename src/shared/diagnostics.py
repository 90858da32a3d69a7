"""Process-wide diagnostic sink for build engine output.

The build engine writes its diagnostics (child process output and log
records) to whatever stream the sink currently points at. The daemon swaps
that stream for the duration of one build and restores it afterwards.
Callers must serialize swaps; the daemon does so through its admission gate.
"""
from __future__ import annotations

import logging
import sys
import threading
import weakref
from typing import TextIO

from src.shared.constants import BUILD_ENGINE_LOGGER_NAME


class DiagnosticSink:
    """Swappable holder of the current diagnostic stream.

    ``None`` means "the interpreter's current ``sys.stderr``", resolved at
    write time so test harnesses that replace ``sys.stderr`` keep working.
    The stream given at construction is the baseline; the sink counts as
    redirected while it points anywhere else.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._baseline = stream
        self._stream = stream
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    @property
    def redirected(self) -> bool:
        return self._stream is not self._baseline

    def swap(self, stream: TextIO | None) -> TextIO | None:
        """Point the sink at ``stream`` and return the previous binding."""
        with self._lock:
            previous = self._stream
            self._stream = stream
        return previous

    def write(self, text: str) -> None:
        with self._lock:
            stream = self.stream
            stream.write(text)
            stream.flush()


class DiagnosticSinkHandler(logging.Handler):
    """Logging handler that emits onto the sink's current stream."""

    def __init__(self, sink: DiagnosticSink, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.sink = sink

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sink.write(self.format(record) + "\n")
        except Exception:
            self.handleError(record)


# Single process-wide sink used by the daemon and the default build engine.
diagnostic_sink = DiagnosticSink()

# Loggers for sinks other than the process-wide one, e.g. one app per test.
_scoped_loggers: weakref.WeakKeyDictionary[DiagnosticSink, logging.Logger] = (
    weakref.WeakKeyDictionary()
)


def _bind(logger: logging.Logger, sink: DiagnosticSink) -> logging.Logger:
    logger.propagate = False
    if logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        if isinstance(handler, DiagnosticSinkHandler):
            if handler.sink is sink:
                return logger
            logger.removeHandler(handler)
    handler = DiagnosticSinkHandler(sink)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    )
    logger.addHandler(handler)
    return logger


def get_engine_logger(sink: DiagnosticSink | None = None) -> logging.Logger:
    """Return the build engine logger for ``sink``.

    The process-wide sink gets the registered ``build_engine`` logger, which
    in-process engines can look up by name. Any other sink gets its own
    unregistered logger, so several apps in one process never write into
    each other's streams. Neither propagates: engine records belong in the
    build's diagnostic stream, not in the daemon's own log.
    """
    sink = sink or diagnostic_sink
    if sink is diagnostic_sink:
        return _bind(logging.getLogger(BUILD_ENGINE_LOGGER_NAME), sink)
    logger = _scoped_loggers.get(sink)
    if logger is None:
        logger = logging.Logger(BUILD_ENGINE_LOGGER_NAME)
        _scoped_loggers[sink] = logger
    return _bind(logger, sink)
