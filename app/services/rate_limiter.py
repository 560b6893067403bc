"""
In-process sliding-window rate limiter.

Each key keeps the timestamps of its accepted requests inside the window.
State lives in the limiter instance (owned by the FastAPI app), so it is
only correct for a single process.  Keys are never evicted: a key with no
recent traffic keeps an empty bucket until ``reset()``.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Accept at most *max_requests* per *window_seconds* per key."""

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: Dict[str, Deque[float]] = {}

    def allow(self, key: str) -> bool:
        """Record a request for *key* and return whether it is within the limit."""
        now = self._clock()
        window_start = now - self.window_seconds
        bucket = self._buckets.setdefault(key, deque())

        while bucket and bucket[0] <= window_start:
            bucket.popleft()

        if len(bucket) >= self.max_requests:
            logger.warning(
                "Rate limit exceeded for %s (%d requests in %.0fs)",
                key,
                len(bucket),
                self.window_seconds,
            )
            return False

        bucket.append(now)
        return True

    def remaining(self, key: str) -> int:
        """Requests still allowed for *key* in the current window."""
        window_start = self._clock() - self.window_seconds
        bucket = self._buckets.get(key, ())
        return max(self.max_requests - sum(1 for t in bucket if t > window_start), 0)

    def reset(self) -> None:
        self._buckets.clear()

    def tracked_keys(self) -> int:
        return len(self._buckets)
