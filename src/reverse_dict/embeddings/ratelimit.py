"""
Token-bucket throttling for hosted embedding APIs.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable


class TokenBucket:
    """Async token bucket.

    Holds up to *burst* tokens and refills at *rate* tokens per second.
    ``acquire`` waits for a token instead of failing, so a burst of calls
    degrades to the allowed rate. Cancelling the waiting task aborts the
    wait immediately.
    """

    def __init__(
        self,
        rate: float,
        burst: int = 1,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = float(rate)
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._updated = clock()
        self._lock: asyncio.Lock | None = None

    @classmethod
    def every(cls, interval: float, burst: int = 1) -> "TokenBucket":
        """One token every *interval* seconds."""
        return cls(1.0 / interval, burst)

    @property
    def interval(self) -> float:
        return 1.0 / self.rate

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(now - self._updated, 0.0)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._updated = now

    async def acquire(self) -> None:
        if self._lock is None:
            self._lock = asyncio.Lock()
        # Waiters queue on the lock so tokens are handed out in FIFO order.
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                await asyncio.sleep((1.0 - self._tokens) / self.rate)
