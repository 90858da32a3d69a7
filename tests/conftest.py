"""Shared test fixtures for the build daemon test suite."""
from __future__ import annotations

import io
import os
from contextlib import ExitStack
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from src.build_daemon.main import create_app
from src.build_daemon.services.admission_gate import AdmissionGate
from src.shared.config import DaemonConfig
from src.shared.diagnostics import DiagnosticSink


@pytest.fixture
def original_stream() -> io.StringIO:
    """The stream the diagnostic sink points at outside of builds."""
    return io.StringIO()


@pytest.fixture
def sink(original_stream: io.StringIO) -> DiagnosticSink:
    """A diagnostic sink isolated from the process-wide one."""
    return DiagnosticSink(original_stream)


@pytest.fixture
def gate() -> AdmissionGate:
    return AdmissionGate()


@pytest.fixture
def daemon_config(tmp_path) -> DaemonConfig:
    return DaemonConfig(
        socket_path=str(tmp_path / "sock" / "daemon.sock"),
        storage_dir=str(tmp_path / "storage"),
        log_level="debug",
    )


@pytest.fixture
def make_client(
    sink: DiagnosticSink,
    gate: AdmissionGate,
    daemon_config: DaemonConfig,
) -> Generator[Callable[..., TestClient], None, None]:
    """Factory for TestClients wired to a fake engine.

    The client is started (lifespan run) and shut down with the test.
    """
    stack = ExitStack()

    def _make(engine_factory, pipe_factory=os.pipe) -> TestClient:
        app = create_app(
            daemon_config,
            engine_factory=engine_factory,
            gate=gate,
            sink=sink,
            pipe_factory=pipe_factory,
        )
        return stack.enter_context(TestClient(app))

    yield _make
    stack.close()
