"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: mcp/rate_limit.py.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable


class SlidingWindowRateLimiter:
    """
    Per-window call ceiling over a log of operation timestamps.

    ``can_proceed`` and ``record`` are used as a pair by single-owner callers.
    ``acquire`` does both under a lock for limiters shared across concurrent
    calls.
    """

    def __init__(
        self,
        max_per_window: int,
        *,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_per_window = max_per_window
        self.window_s = window_s
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_s:
            self._timestamps.popleft()

    def can_proceed(self) -> bool:
        with self._lock:
            self._prune(self._clock())
            return len(self._timestamps) < self.max_per_window

    def record(self) -> None:
        with self._lock:
            self._timestamps.append(self._clock())

    def acquire(self) -> bool:
        """Admit and record one operation atomically."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) >= self.max_per_window:
                return False
            self._timestamps.append(now)
            return True

    @property
    def remaining(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return max(0, self.max_per_window - len(self._timestamps))
