"""
Cooperative cancellation shared by the controller and the drivers.
"""

import threading

from .errors import RunCancelled


class CancelToken:
    """Set once, never cleared. Every wait goes through here so it can be interrupted."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled()

    def sleep(self, seconds: float) -> None:
        """Wait up to `seconds`; raises RunCancelled as soon as the flag is set."""
        if seconds <= 0:
            self.raise_if_cancelled()
            return
        if self._event.wait(seconds):
            raise RunCancelled()
