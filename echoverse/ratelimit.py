# echoverse/ratelimit.py
from __future__ import annotations

import time
import threading
from collections import deque
from typing import Callable, Deque, Dict


class SlidingWindowLimiter:
    """
    Per-key request counter over a sliding window: a key may make at most
    `max_requests` hits in any `window_s` seconds.
    """

    def __init__(self, max_requests: int = 100, window_s: float = 15 * 60,
                 clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_s = window_s
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def hit(self, key: str) -> bool:
        """Count one request for `key`; False when it is over the limit (not counted)."""
        now = self.clock()
        cutoff = now - self.window_s
        with self._lock:
            if now - self._last_sweep >= self.window_s:
                self._sweep(cutoff)
                self._last_sweep = now
            q = self._hits.setdefault(key, deque())
            while q and q[0] <= cutoff:
                q.popleft()
            if len(q) >= self.max_requests:
                return False
            q.append(now)
            return True

    def retry_after(self, key: str) -> int:
        with self._lock:
            q = self._hits.get(key)
            if not q:
                return 0
            return max(0, int(q[0] + self.window_s - self.clock()) + 1)

    def _sweep(self, cutoff: float) -> None:
        """Forget keys with no hits left in the window. Caller holds the lock."""
        for key in [k for k, q in self._hits.items() if not q or q[-1] <= cutoff]:
            del self._hits[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)
