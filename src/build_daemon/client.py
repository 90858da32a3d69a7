"""HTTP client for the build daemon's unix socket."""
from __future__ import annotations

from typing import Iterator

import httpx

from src.shared.constants import DEFAULT_SOCKET_PATH

# Builds have no upper bound on duration; only connecting is time-limited.
DEFAULT_TIMEOUT = httpx.Timeout(None, connect=10.0)


class BuildRejectedError(Exception):
    """Raised when the daemon answers a build request with a non-200 status."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"build rejected with status {status_code}: {detail}")


class BuildDaemonClient:
    """Talks to a running daemon over its unix socket.

    Usage::

        with BuildDaemonClient("/makisu-socket/makisu.sock") as client:
            for line in client.build(["build", "-t", "app:1", "/context"]):
                print(line)
    """

    def __init__(
        self,
        socket_path: str = DEFAULT_SOCKET_PATH,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self.socket_path = socket_path
        self._client = httpx.Client(
            transport=httpx.HTTPTransport(uds=socket_path),
            base_url="http://build-daemon",
            timeout=timeout,
        )

    def __enter__(self) -> BuildDaemonClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def ready(self) -> bool:
        """Return True when the daemon has no build in progress."""
        resp = self._client.get("/ready")
        return resp.status_code == 200

    def build(self, args: list[str]) -> Iterator[str]:
        """Submit a build and yield its output lines as they arrive.

        Raises:
            BuildRejectedError: If the daemon refuses the request.
        """
        with self._client.stream("POST", "/build", json=args) as resp:
            if resp.status_code != 200:
                resp.read()
                raise BuildRejectedError(resp.status_code, resp.text)
            yield from resp.iter_lines()
