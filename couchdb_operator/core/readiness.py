"""
Process-wide readiness cell backing the /readyz probe.
"""
import threading


class ReadinessState:
    """Boolean ready flag safe to read from any thread."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ready = False

    def set_ready(self) -> None:
        with self._lock:
            self._ready = True

    def reset(self) -> None:
        with self._lock:
            self._ready = False

    def is_ready(self) -> bool:
        with self._lock:
            return self._ready


# Global instance
readiness = ReadinessState()
