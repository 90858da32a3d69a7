"""Tests for shared constants values."""
from __future__ import annotations

from src.shared.constants import (
    ALREADY_BUILDING_MESSAGE,
    BUILD_DAEMON_SERVICE_NAME,
    BUILD_ENGINE_LOGGER_NAME,
    DEFAULT_SOCKET_PATH,
    STREAM_MEDIA_TYPE,
    VERSION,
)


class TestConstants:
    def test_version_is_semver(self):
        parts = VERSION.split(".")
        assert len(parts) == 3
        assert all(part.isdigit() for part in parts)

    def test_conflict_message(self):
        assert ALREADY_BUILDING_MESSAGE == "Already processing a request"

    def test_default_socket_path_is_absolute(self):
        assert DEFAULT_SOCKET_PATH.startswith("/")
        assert DEFAULT_SOCKET_PATH.endswith(".sock")

    def test_logger_names_differ(self):
        # Engine records must not land in the daemon's own log.
        assert BUILD_DAEMON_SERVICE_NAME != BUILD_ENGINE_LOGGER_NAME

    def test_stream_media_type_is_plain_text(self):
        assert STREAM_MEDIA_TYPE.startswith("text/plain")
