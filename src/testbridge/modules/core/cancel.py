"""Cooperative cancellation for test runs.

A CancelToken is handed to whichever flow is running. The SIGINT handler
installed by interrupt_handler() is one producer of cancellation; tests
cancel the token directly.
"""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Callable, Iterator

logger = logging.getLogger(__name__)


class CancelToken:
    """Thread-safe, one-shot cancellation flag.

    Flows either poll ``cancelled`` from their receive loops or register a
    callback with on_cancel(). Each registered callback runs exactly once,
    on the thread that cancels the token (or the registering thread if the
    token is already cancelled).
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        # Reentrant: cancel() may run from a SIGINT handler on a thread that
        # is already inside on_cancel().
        self._lock = threading.RLock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Cancel the token. Returns False if it was already cancelled."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
        self._run_callbacks()
        return True

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once when the token is cancelled.

        Runs it immediately if the token is already cancelled.
        """
        with self._lock:
            self._callbacks.append(callback)
        if self._event.is_set():
            self._run_callbacks()

    def _run_callbacks(self) -> None:
        while True:
            with self._lock:
                if not self._callbacks:
                    return
                callback = self._callbacks.pop(0)
            callback()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


@contextmanager
def interrupt_handler(token: CancelToken) -> Iterator[CancelToken]:
    """Cancel ``token`` on SIGINT for the duration of the block."""

    def handle_signal(signum, frame):
        if token.cancel():
            logger.debug("interrupt received, cancelling")

    previous = signal.signal(signal.SIGINT, handle_signal)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)
