"""
One-shot shutdown signal for the API listener.

The stop route sends it after the Minecraft server has exited; the runner in
__main__ waits on it and then tells uvicorn to exit. Sending twice is an
error, since it means an earlier shutdown already happened.
"""

import threading

from .errors import ShutdownAlreadyRequested


class ShutdownHandoff:
    """Single-use notification from the stop route to the listener."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sent = False
        self._event = threading.Event()

    def send(self):
        """Fire the signal. Raises ShutdownAlreadyRequested on a second call."""
        with self._lock:
            if self._sent:
                raise ShutdownAlreadyRequested("shutdown signal was already sent")
            self._sent = True
        self._event.set()

    def wait(self, timeout: float = None) -> bool:
        """Block until the signal is sent. Returns False on timeout."""
        return self._event.wait(timeout)

    @property
    def is_set(self) -> bool:
        return self._event.is_set()
