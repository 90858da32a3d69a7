"""Build daemon FastAPI application."""
from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable

from fastapi import FastAPI

from src.build_daemon.services.admission_gate import AdmissionGate
from src.build_daemon.services.build_invoker import (
    BuildInvoker,
    EngineFactory,
    subprocess_engine_factory,
)
from src.shared.config import DaemonConfig
from src.shared.constants import BUILD_DAEMON_SERVICE_NAME, VERSION
from src.shared.diagnostics import DiagnosticSink, diagnostic_sink
from src.shared.errors import register_exception_handlers
from src.shared.logging import TraceIDMiddleware, setup_logging


def create_app(
    config: DaemonConfig | None = None,
    engine_factory: EngineFactory | None = None,
    gate: AdmissionGate | None = None,
    sink: DiagnosticSink | None = None,
    pipe_factory: Callable[[], tuple[int, int]] = os.pipe,
) -> FastAPI:
    """Build the daemon app.

    Args:
        config: Daemon configuration; read from the environment if omitted.
        engine_factory: Produces one build engine per request. Defaults to
            the external engine executable named by the config.
        gate: Admission gate shared by all requests.
        sink: Diagnostic sink redirected during builds.
        pipe_factory: Creates the relay pipe for each build.
    """
    config = config or DaemonConfig()
    sink = sink or diagnostic_sink
    gate = gate or AdmissionGate()
    if engine_factory is None:
        engine_factory = subprocess_engine_factory(
            config.build_engine_command, config.storage_dir, sink=sink
        )
    logger = setup_logging(BUILD_DAEMON_SERVICE_NAME, config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan - initialize and cleanup resources."""
        app.state.start_time = time.time()
        app.state.config = config
        app.state.gate = gate
        app.state.sink = sink
        app.state.pipe_factory = pipe_factory
        app.state.invoker = BuildInvoker(engine_factory, sink=sink)
        app.state.last_session = None

        logger.info(
            "Service started: name=%s version=%s socket=%s",
            BUILD_DAEMON_SERVICE_NAME, VERSION, config.socket_path,
        )
        yield

        session = app.state.last_session
        if session is not None and not session.done.is_set():
            logger.warning("Stopping while a build is still running")
        logger.info("Service stopped: name=%s", BUILD_DAEMON_SERVICE_NAME)

    app = FastAPI(
        title="Build Daemon",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(TraceIDMiddleware)
    register_exception_handlers(app)

    from src.build_daemon.routers.build import router as build_router
    from src.build_daemon.routers.ready import router as ready_router

    app.include_router(ready_router)
    app.include_router(build_router)
    return app


app = create_app()
