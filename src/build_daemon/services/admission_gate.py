"""Single-flight admission gate for builds."""
from __future__ import annotations

import threading


class AdmissionGate:
    """Tracks whether a build is in progress.

    ``try_acquire`` is an atomic test-and-set; it never waits. Requests that
    lose the race are rejected rather than queued.
    """

    def __init__(self) -> None:
        self._busy = False
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        with self._lock:
            if self._busy:
                return False
            self._busy = True
            return True

    def release(self) -> None:
        with self._lock:
            self._busy = False

    def is_busy(self) -> bool:
        return self._busy
