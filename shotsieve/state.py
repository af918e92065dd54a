"""
Session state for the scan engine.

Holds the flags that must be shared between the thread running a scan and
the threads controlling it (HTTP handlers, signal handlers, callbacks).
"""

from __future__ import annotations

import threading
from typing import Optional


class ScanSession:
    """
    Running/stop flags, batch counter and last error of one engine.

    At most one scan may be active: begin() claims the session atomically
    and returns False when it is already taken.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._running = False
        self._stop_requested = False
        self._owner: Optional[int] = None
        self._current_batch = 0
        self._last_error: Optional[BaseException] = None

    def begin(self, reset_batches: bool = True) -> bool:
        """Claim the session for a new run. False if a run is active."""
        with self._lock:
            if self._running:
                return False
            self._running = True
            self._stop_requested = False
            self._owner = threading.get_ident()
            self._last_error = None
            if reset_batches:
                self._current_batch = 0
            self._idle.clear()
            return True

    def finish(self):
        """Release the session."""
        with self._lock:
            self._running = False
            self._owner = None
            self._idle.set()

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def stop_requested(self) -> bool:
        """Check if stop has been requested."""
        with self._lock:
            return self._stop_requested

    def request_stop(self):
        """Request a cooperative stop of the current run."""
        with self._lock:
            self._stop_requested = True

    @property
    def owned_by_current_thread(self) -> bool:
        with self._lock:
            return self._running and self._owner == threading.get_ident()

    @property
    def current_batch(self) -> int:
        with self._lock:
            return self._current_batch

    def next_batch(self) -> int:
        """Advance the batch counter and return the new batch index."""
        with self._lock:
            self._current_batch += 1
            return self._current_batch

    @property
    def last_error(self) -> Optional[BaseException]:
        with self._lock:
            return self._last_error

    def record_error(self, error: BaseException):
        with self._lock:
            self._last_error = error

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no run is active. False on timeout."""
        return self._idle.wait(timeout)
