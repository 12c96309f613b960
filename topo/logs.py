"""Logging helpers."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict


class ThrottledLogger:
    """
    Suppresses repeats of the same message within a time window.

    Poll ticks run every few seconds; a cluster that keeps answering with the
    same error would otherwise flood the log with identical lines.
    """

    def __init__(
        self,
        logger: logging.Logger,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.logger = logger
        self.window_s = window_s
        self._clock = clock
        self._last_seen: Dict[tuple, float] = {}
        self._lock = threading.Lock()

    def warning(self, msg: str) -> bool:
        return self.log(logging.WARNING, msg)

    def log(self, level: int, msg: str) -> bool:
        """Log ``msg`` unless it was logged within the window. Returns True if emitted."""
        key = (level, msg)
        now = self._clock()

        with self._lock:
            last = self._last_seen.get(key)
            if last is not None and now - last < self.window_s:
                return False
            self._last_seen[key] = now

            # Drop stale keys so the map does not grow with one-off messages
            if len(self._last_seen) > 256:
                cutoff = now - self.window_s
                self._last_seen = {k: t for k, t in self._last_seen.items() if t >= cutoff}

        self.logger.log(level, msg)
        return True

    def reset(self) -> None:
        with self._lock:
            self._last_seen.clear()
