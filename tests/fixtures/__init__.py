"""Fake build engines and writers for daemon tests.

The engines write to a :class:`DiagnosticSink` exactly as a real engine's
diagnostics would, and use ``threading.Event`` objects so tests can control
the interleaving of engine output and client reads.
"""

from __future__ import annotations

import queue
import threading

from src.shared.diagnostics import DiagnosticSink
from src.shared.errors import StreamClosedError

WAIT_SECONDS = 5.0


class ScriptedEngine:
    """Writes a fixed list of lines, optionally failing at one stage."""

    def __init__(
        self,
        sink: DiagnosticSink,
        lines: list[str] | None = None,
        fail_on: str | None = None,
    ) -> None:
        self.sink = sink
        self.lines = lines or []
        self.fail_on = fail_on
        self.run_args: list[str] | None = None
        self.cleaned_up = False

    def run(self, args: list[str]) -> None:
        self.run_args = list(args)
        for line in self.lines:
            self.sink.write(line + "\n")
        if self.fail_on == "run":
            raise RuntimeError("engine run failed")

    def cleanup(self) -> None:
        if self.fail_on == "cleanup":
            raise RuntimeError("engine cleanup failed")
        self.cleaned_up = True


class BlockingEngine:
    """Writes ``before``, blocks until ``proceed`` is set, writes ``after``."""

    def __init__(
        self,
        sink: DiagnosticSink,
        before: list[str],
        after: list[str],
    ) -> None:
        self.sink = sink
        self.before = before
        self.after = after
        self.started = threading.Event()
        self.proceed = threading.Event()

    def run(self, args: list[str]) -> None:
        for line in self.before:
            self.sink.write(line + "\n")
        self.started.set()
        if not self.proceed.wait(WAIT_SECONDS):
            raise RuntimeError("test never released the engine")
        for line in self.after:
            self.sink.write(line + "\n")

    def cleanup(self) -> None:
        pass


class LockstepEngine:
    """Writes one line at a time, waiting for an ack before the next.

    ``timeouts`` counts lines the consumer never acknowledged in time, which
    means output was buffered rather than streamed.
    """

    def __init__(self, sink: DiagnosticSink, lines: list[str]) -> None:
        self.sink = sink
        self.lines = lines
        self.acks = [threading.Event() for _ in lines]
        self.timeouts = 0

    def run(self, args: list[str]) -> None:
        for line, ack in zip(self.lines, self.acks):
            self.sink.write(line + "\n")
            if not ack.wait(WAIT_SECONDS):
                self.timeouts += 1

    def cleanup(self) -> None:
        pass


def engine_factory_for(engine):
    """Return an engine factory that always hands out ``engine``."""

    def factory():
        return engine

    return factory


class RecordingWriter:
    """Line writer that records chunks and exposes them on a queue."""

    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self.flushes = 0
        self.received: queue.Queue[bytes] = queue.Queue()

    def write(self, data: bytes) -> None:
        self.chunks.append(data)
        self.received.put(data)

    def flush(self) -> None:
        self.flushes += 1


class BrokenWriter:
    """Line writer whose client has already disconnected."""

    def __init__(self) -> None:
        self.attempts = 0

    def write(self, data: bytes) -> None:
        self.attempts += 1
        raise StreamClosedError("client went away")

    def flush(self) -> None:
        raise StreamClosedError("client went away")
