"""Daemon configuration management using pydantic-settings."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from src.shared.constants import (
    DEFAULT_BUILD_ENGINE_COMMAND,
    DEFAULT_SOCKET_PATH,
    DEFAULT_STORAGE_DIR,
)


class SharedConfig(BaseSettings):
    """Base configuration shared by the daemon and its tooling."""
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


class DaemonConfig(SharedConfig):
    """Configuration for the build daemon."""
    socket_path: str = Field(
        default=DEFAULT_SOCKET_PATH, validation_alias="SOCKET_PATH"
    )
    build_engine_command: str = Field(
        default=DEFAULT_BUILD_ENGINE_COMMAND,
        validation_alias="BUILD_ENGINE_COMMAND",
    )
    storage_dir: str = Field(
        default=DEFAULT_STORAGE_DIR, validation_alias="STORAGE_DIR"
    )
