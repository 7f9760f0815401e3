"""Minimal observer registry used by the scanner and organizer for progress."""
from __future__ import annotations

import logging
import threading
import time

logger = logging.getLogger("curatarr")

PROGRESS_THROTTLE_SEC = 0.1


class Emitter:
    """Named-event callbacks. A failing listener never breaks the emitter."""

    def __init__(self):
        self._listeners = {}
        self._lock = threading.Lock()

    def on(self, event, callback):
        """Subscribe ``callback`` to ``event``; returns an unsubscribe function."""
        with self._lock:
            self._listeners.setdefault(event, []).append(callback)

        def _unsubscribe():
            with self._lock:
                callbacks = self._listeners.get(event, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    def emit(self, event, *args):
        with self._lock:
            callbacks = list(self._listeners.get(event, []))
        for callback in callbacks:
            try:
                callback(*args)
            except Exception as e:
                logger.warning("Listener for %s failed: %s", event, e)


class Throttle:
    """Allows at most one call per ``interval`` seconds unless forced."""

    def __init__(self, interval=PROGRESS_THROTTLE_SEC, clock=time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last = None

    def ready(self, force=False):
        now = self._clock()
        if force or self._last is None or now - self._last >= self.interval:
            self._last = now
            return True
        return False
