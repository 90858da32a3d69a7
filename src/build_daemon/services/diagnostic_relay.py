"""Relay of the diagnostic stream into an HTTP response, line by line.

A relay owns one pipe for the duration of one build. The write end becomes
the process-wide diagnostic sink; a background thread copies completed lines
from the read end into the response writer and flushes after each one.

Teardown order matters: the write end is closed first so the reader sees
end-of-stream, then the reader is awaited, then the previous sink is put
back.
"""
from __future__ import annotations

import contextlib
import logging
import os
import threading
from typing import BinaryIO, Callable, Protocol, TextIO

from src.shared.constants import BUILD_DAEMON_SERVICE_NAME
from src.shared.diagnostics import DiagnosticSink
from src.shared.errors import ResourceSetupError, StreamClosedError

logger = logging.getLogger(BUILD_DAEMON_SERVICE_NAME)


def _close_fd(fd: int) -> None:
    # io.open may already have closed the descriptor while failing.
    with contextlib.suppress(OSError):
        os.close(fd)


class LineWriter(Protocol):
    """Destination for relayed lines."""

    def write(self, data: bytes) -> None: ...

    def flush(self) -> None: ...


class DiagnosticRelay:
    """Redirects a :class:`DiagnosticSink` into a pipe and drains it.

    Args:
        sink: The process-wide sink to redirect.
        pipe_factory: Returns ``(read_fd, write_fd)``. Defaults to
            :func:`os.pipe`.
    """

    def __init__(
        self,
        sink: DiagnosticSink,
        pipe_factory: Callable[[], tuple[int, int]] = os.pipe,
    ) -> None:
        self._sink = sink
        self._pipe_factory = pipe_factory
        self._reader: BinaryIO | None = None
        self._writer: TextIO | None = None
        self._previous: TextIO | None = None
        self._thread: threading.Thread | None = None
        self._done: threading.Event | None = None
        self.lines_relayed = 0

    @property
    def active(self) -> bool:
        return self._writer is not None

    def begin(self) -> None:
        """Create the pipe and point the sink at its write end.

        Raises:
            ResourceSetupError: If the pipe cannot be created. The sink is
                left untouched.
        """
        try:
            read_fd, write_fd = self._pipe_factory()
        except OSError as exc:
            raise ResourceSetupError(
                f"failed to create diagnostic pipe: {exc}"
            ) from exc

        try:
            reader = os.fdopen(read_fd, "rb")
        except (OSError, ValueError) as exc:
            _close_fd(read_fd)
            _close_fd(write_fd)
            raise ResourceSetupError(
                f"failed to open diagnostic pipe: {exc}"
            ) from exc
        try:
            writer = os.fdopen(
                write_fd, "w", buffering=1, encoding="utf-8", errors="replace"
            )
        except (OSError, ValueError) as exc:
            reader.close()
            _close_fd(write_fd)
            raise ResourceSetupError(
                f"failed to open diagnostic pipe: {exc}"
            ) from exc

        self._reader = reader
        self._writer = writer
        self._previous = self._sink.swap(self._writer)

    def start_draining(self, writer: LineWriter) -> threading.Event:
        """Start the background reader; returns its completion event."""
        if self._reader is None:
            raise RuntimeError("relay has not begun")
        done = threading.Event()
        self._done = done
        self._thread = threading.Thread(
            target=self._drain,
            args=(self._reader, writer, done),
            name="diagnostic-relay",
            daemon=True,
        )
        self._thread.start()
        return done

    def _drain(
        self, reader: BinaryIO, writer: LineWriter, done: threading.Event
    ) -> None:
        forwarding = True
        try:
            while True:
                try:
                    line = reader.readline()
                except (OSError, ValueError) as exc:
                    logger.warning("Diagnostic pipe read failed: %s", exc)
                    return
                if not line:
                    return
                if not forwarding:
                    # Keep consuming so the engine never blocks on a full pipe.
                    continue

                if line.endswith(b"\n"):
                    line = line[:-1]
                if line.endswith(b"\r"):
                    line = line[:-1]
                try:
                    writer.write(line + b"\n")
                    writer.flush()
                except (StreamClosedError, OSError) as exc:
                    forwarding = False
                    logger.info("Client stopped reading build output: %s", exc)
                    continue
                self.lines_relayed += 1
        finally:
            done.set()

    def end(self) -> None:
        """Close the write end, wait for the reader, restore the sink.

        Safe to call more than once.
        """
        writer, self._writer = self._writer, None
        if writer is None:
            return
        try:
            writer.close()
        except OSError as exc:
            logger.warning("Failed to close diagnostic pipe: %s", exc)
        finally:
            if self._done is not None:
                self._done.wait()
            if self._thread is not None:
                self._thread.join()
            if self._reader is not None:
                self._reader.close()
                self._reader = None
            self._sink.swap(self._previous)
            self._previous = None
