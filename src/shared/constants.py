"""Shared constants used across the daemon."""
from __future__ import annotations

# Application version
VERSION: str = "1.0.0"

# Service names
BUILD_DAEMON_SERVICE_NAME: str = "build-daemon"
BUILD_ENGINE_LOGGER_NAME: str = "build_engine"

# Listener defaults
DEFAULT_SOCKET_PATH: str = "/makisu-socket/makisu.sock"

# Build engine defaults
DEFAULT_BUILD_ENGINE_COMMAND: str = "makisu"
DEFAULT_STORAGE_DIR: str = "/makisu-storage"

# Response bodies
ALREADY_BUILDING_MESSAGE: str = "Already processing a request"
STREAM_MEDIA_TYPE: str = "text/plain; charset=utf-8"

# Lines buffered between the relay thread and a slow client before the relay
# (and through the pipe, the engine) is made to wait.
RESPONSE_QUEUE_SIZE: int = 256
