"""
Scheduled callbacks with an explicit start/cancel lifecycle.

- PeriodicTimer: runs a callback at a fixed interval on a daemon thread
- DelayedAction: runs a callback once after a delay

Cancellation is idempotent. A cancelled callback never starts.
"""

import threading
from typing import Callable, Optional

from gloaming.logger import logger


class PeriodicTimer:
    """Fixed-interval callback loop on a background thread."""

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "PeriodicTimer"):
        """
        Args:
            interval: Seconds between callback invocations
            callback: Function to call every interval
            name: Thread name (shows up in logs)
        """
        self.interval = interval
        self.callback = callback
        self.name = name

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        with self._lock:
            if self.is_running:
                logger.warning(f"{self.name} already running")
                return

            self._stop_event.clear()
            self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
            self._thread.start()
            logger.debug(f"{self.name} started (interval={self.interval}s)")

    def stop(self):
        with self._lock:
            self._stop_event.set()
            thread = self._thread
            self._thread = None

        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning(f"{self.name} thread did not stop gracefully")

    def _loop(self):
        while not self._stop_event.wait(self.interval):
            try:
                self.callback()
            except Exception as e:
                logger.error(f"Error in {self.name}: {e}", exc_info=True)


class DelayedAction:
    """One-shot callback after a delay."""

    def __init__(self, delay: float, action: Callable[[], None]):
        self.delay = max(0.0, delay)
        self.action = action

        self._cancelled = False
        self._fired = False
        self._lock = threading.Lock()
        self._timer = threading.Timer(self.delay, self._fire)
        self._timer.daemon = True

    @property
    def is_pending(self) -> bool:
        return not (self._cancelled or self._fired)

    def start(self) -> "DelayedAction":
        self._timer.start()
        return self

    def cancel(self):
        with self._lock:
            self._cancelled = True
        self._timer.cancel()

    def _fire(self):
        with self._lock:
            if self._cancelled:
                return
            self._fired = True

        try:
            self.action()
        except Exception as e:
            logger.error(f"Error in delayed action: {e}", exc_info=True)


def schedule_delayed(delay: float, action: Callable[[], None]) -> DelayedAction:
    """Run action once after delay seconds."""
    return DelayedAction(delay, action).start()
