"""Build invoker: runs one build through an opaque build engine."""
from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from typing import Callable, Protocol, runtime_checkable

from src.shared.diagnostics import DiagnosticSink, diagnostic_sink, get_engine_logger
from src.shared.errors import BuildExecutionError


@runtime_checkable
class BuildEngine(Protocol):
    """Protocol for build engines driven by the daemon."""

    def run(self, args: list[str]) -> None:
        """Execute one build.

        Diagnostics go to the process-wide diagnostic sink.

        Raises:
            Exception: Any failure; the invoker wraps it.
        """
        ...

    def cleanup(self) -> None:
        """Release whatever the build left behind."""
        ...


EngineFactory = Callable[[], BuildEngine]


class SubprocessBuildEngine:
    """Runs the external build engine executable as a child process.

    The child's stdout and stderr are the sink's current stream, so its output
    lands in the relay pipe without passing through this process. Each build
    gets a scratch directory under ``storage_dir``, exported to the child as
    ``BUILD_SCRATCH_DIR``. A successful build removes it in :meth:`cleanup`;
    a failed one removes it before :meth:`run` raises, since the invoker
    does not clean up after failures.
    """

    def __init__(
        self,
        command: str,
        storage_dir: str,
        sink: DiagnosticSink | None = None,
    ) -> None:
        self.command = command
        self.storage_dir = storage_dir
        self.sink = sink or diagnostic_sink
        os.makedirs(storage_dir, exist_ok=True)
        self.scratch_dir = tempfile.mkdtemp(prefix="build-", dir=storage_dir)

    def run(self, args: list[str]) -> None:
        try:
            self._run_child(args)
        except BaseException:
            self._remove_scratch_dir()
            raise

    def _run_child(self, args: list[str]) -> None:
        stream = self.sink.stream
        stream.flush()
        env = dict(os.environ, BUILD_SCRATCH_DIR=self.scratch_dir)
        completed = subprocess.run(
            [self.command, *args],
            stdout=stream,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            cwd=self.scratch_dir,
            env=env,
            check=False,
        )
        if completed.returncode != 0:
            raise RuntimeError(
                f"{self.command} exited with status {completed.returncode}"
            )

    def _remove_scratch_dir(self) -> None:
        if os.path.isdir(self.scratch_dir):
            shutil.rmtree(self.scratch_dir)

    def cleanup(self) -> None:
        self._remove_scratch_dir()


class BuildInvoker:
    """Constructs an engine per build, runs it and cleans up.

    Failures are raised as :class:`BuildExecutionError` and also written to
    the engine log, which follows the diagnostic sink into the client's
    stream. Failed builds are never retried.
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        sink: DiagnosticSink | None = None,
    ) -> None:
        self._engine_factory = engine_factory
        self._engine_log = get_engine_logger(sink)

    def invoke(self, args: list[str]) -> None:
        try:
            engine = self._engine_factory()
        except Exception as exc:
            self._engine_log.error("%s", exc)
            raise BuildExecutionError("construction", str(exc)) from exc

        try:
            engine.run(args)
        except Exception as exc:
            self._engine_log.error("%s", exc)
            raise BuildExecutionError("execution", str(exc)) from exc

        try:
            engine.cleanup()
        except Exception as exc:
            self._engine_log.error("%s", exc)
            raise BuildExecutionError("cleanup", str(exc)) from exc


def subprocess_engine_factory(
    command: str, storage_dir: str, sink: DiagnosticSink | None = None
) -> EngineFactory:
    """Return a factory producing :class:`SubprocessBuildEngine` instances."""

    def factory() -> BuildEngine:
        return SubprocessBuildEngine(command, storage_dir, sink=sink)

    return factory
