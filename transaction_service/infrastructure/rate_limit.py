"""Fixed-window request counter keyed by API key fingerprint"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class _Window:
    started_at: float
    count: int


class RateLimiter:
    """
    Per-key fixed-window limiter.

    Each key owns a lock, so updates for one key never contend with another.
    The window is approximate: a burst straddling a boundary can see up to
    twice the limit.
    """

    def __init__(
        self,
        limit_per_window: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit_per_window
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._locks: Dict[str, threading.Lock] = {}

    def allow(self, key: str) -> bool:
        """Count one request for ``key``; False once the window's limit is reached"""
        lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            now = self._clock()
            window = self._windows.setdefault(key, _Window(started_at=now, count=0))

            if now - window.started_at > self.window_seconds:
                self._windows[key] = _Window(started_at=now, count=1)
                return True

            if window.count < self.limit:
                window.count += 1
                return True

            return False

    def reset(self) -> None:
        """Drop all counters"""
        self._windows.clear()
        self._locks.clear()
