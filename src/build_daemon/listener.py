"""Unix socket listener for the build daemon."""
from __future__ import annotations

import logging
import os

import uvicorn
from fastapi import FastAPI

from src.shared.config import DaemonConfig
from src.shared.constants import BUILD_DAEMON_SERVICE_NAME
from src.shared.errors import ListenerError

logger = logging.getLogger(BUILD_DAEMON_SERVICE_NAME)


def prepare_socket_dir(socket_path: str) -> None:
    """Create the directory holding ``socket_path`` if it is missing."""
    socket_dir = os.path.dirname(socket_path)
    if not socket_dir:
        return
    try:
        os.makedirs(socket_dir, exist_ok=True)
    except OSError as exc:
        raise ListenerError(
            f"failed to create directory to socket {socket_path}: {exc}"
        ) from exc


def build_server(app: FastAPI, socket_path: str, log_level: str = "info") -> uvicorn.Server:
    """Return a uvicorn server bound to ``socket_path``."""
    config = uvicorn.Config(
        app,
        uds=socket_path,
        log_level=log_level.lower(),
        log_config=None,
        access_log=False,
        lifespan="on",
    )
    return uvicorn.Server(config)


def listen(config: DaemonConfig, app: FastAPI | None = None) -> None:
    """Create the socket directory and serve build requests until exit.

    Raises:
        ListenerError: If the directory cannot be created or serving fails.
    """
    if app is None:
        from src.build_daemon.main import create_app

        app = create_app(config)

    prepare_socket_dir(config.socket_path)
    server = build_server(app, config.socket_path, config.log_level)
    logger.info(
        "Listening for build requests on unix socket %s", config.socket_path
    )
    try:
        server.run()
    except (OSError, SystemExit) as exc:
        raise ListenerError(
            f"failed to serve on unix socket {config.socket_path}: {exc}"
        ) from exc
