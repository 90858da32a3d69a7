"""Owned worker that carries one admitted build through to gate release."""
from __future__ import annotations

import contextvars
import logging
import threading

from src.build_daemon.services.admission_gate import AdmissionGate
from src.build_daemon.services.build_invoker import BuildInvoker
from src.build_daemon.services.diagnostic_relay import DiagnosticRelay
from src.build_daemon.services.response_channel import ResponseChannel
from src.shared.constants import BUILD_DAEMON_SERVICE_NAME
from src.shared.errors import BuildExecutionError

logger = logging.getLogger(BUILD_DAEMON_SERVICE_NAME)


class BuildSession:
    """Runs the build for a request whose relay has already begun.

    The session owns the rest of the admitted window: it starts draining,
    invokes the engine, ends the relay, releases the gate and finally closes
    the response channel. Release and restore run on every path, including
    unexpected faults, and always before the response is finished.
    """

    def __init__(
        self,
        args: list[str],
        gate: AdmissionGate,
        relay: DiagnosticRelay,
        invoker: BuildInvoker,
        channel: ResponseChannel,
    ) -> None:
        self.args = args
        self._gate = gate
        self._relay = relay
        self._invoker = invoker
        self._channel = channel
        self._thread: threading.Thread | None = None
        self.done = threading.Event()
        self.error: BaseException | None = None

    def start(self) -> None:
        # Carry the request's trace_id into the worker thread.
        ctx = contextvars.copy_context()
        self._thread = threading.Thread(
            target=ctx.run,
            args=(self._run,),
            name="build-session",
            daemon=True,
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker thread to exit; True if it has."""
        if self._thread is None:
            return self.done.is_set()
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        try:
            try:
                self._relay.start_draining(self._channel)
                logger.info("Starting build: args=%s", self.args)
                self._invoker.invoke(self.args)
            except BuildExecutionError as exc:
                self.error = exc
                logger.error("Build failed during %s: %s", exc.stage, exc)
            except Exception as exc:
                self.error = exc
                logger.exception("Unexpected failure while running build")
            finally:
                self._relay.end()
        finally:
            self._gate.release()
            self._channel.finish()
            logger.info(
                "Build request served: lines=%d", self._relay.lines_relayed
            )
            self.done.set()
