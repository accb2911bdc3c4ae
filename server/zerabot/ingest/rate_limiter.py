"""
Token Bucket Rate Limiter

One instance is shared by every ingestion connection in the process. The
bucket starts full; a token refills every `interval` seconds up to `burst`.
"""
from __future__ import annotations

import threading
import time
from typing import Callable


class TokenBucket:
    """
    Thread-safe token bucket.

    Reference configuration: TokenBucket(interval=3.0, burst=1), i.e. one
    block per three seconds with no burst.
    """

    def __init__(
        self,
        interval: float = 3.0,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self._interval = interval
        self._burst = burst
        self._clock = clock
        self._lock = threading.Lock()
        self._tokens = float(burst)
        self._last = clock()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def burst(self) -> int:
        return self._burst

    def allow(self) -> bool:
        """Take one token if available; never blocks."""
        with self._lock:
            now = self._clock()
            elapsed = max(0.0, now - self._last)
            self._last = now
            self._tokens = min(float(self._burst), self._tokens + elapsed / self._interval)
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False
