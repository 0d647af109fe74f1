"""In-memory rolling-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: purge, check and record happen under one lock.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable

from grc_records.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Admit at most ``max_requests`` calls in any trailing ``window_seconds``.

    The window slides with the clock, so a burst at the end of one minute
    cannot be followed by a second full burst at the start of the next.
    Timestamps of admitted calls are kept oldest-first and dropped once they
    are ``window_seconds`` old.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_requests: Maximum admitted calls per window.
            window_seconds: Length of the rolling window in seconds.
            clock: Time source returning seconds; must not go backwards.

        Raises:
            ValueError: If max_requests or window_seconds are invalid.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._limit = max_requests
        self._window = float(window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._admitted: deque[float] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window

    def _purge_locked(self, now: float) -> None:
        window_start = now - self._window
        while self._admitted and self._admitted[0] <= window_start:
            self._admitted.popleft()

    def consume(self) -> RateLimitDecision:
        """Admission check: purge, compare against the limit, record if admitted."""
        with self._lock:
            now = self._clock()
            self._purge_locked(now)

            if len(self._admitted) < self._limit:
                self._admitted.append(now)
                return RateLimitDecision(
                    allowed=True,
                    limit=self._limit,
                    remaining=self._limit - len(self._admitted),
                    retry_after_seconds=None,
                )

            retry_after = max(0.0, self._admitted[0] + self._window - now)
            return RateLimitDecision(
                allowed=False,
                limit=self._limit,
                remaining=0,
                retry_after_seconds=retry_after,
            )

    def remaining(self) -> int:
        with self._lock:
            self._purge_locked(self._clock())
            return max(0, self._limit - len(self._admitted))

    def snapshot(self) -> tuple[float, ...]:
        """Timestamps currently inside the window, oldest first."""
        with self._lock:
            self._purge_locked(self._clock())
            return tuple(self._admitted)
