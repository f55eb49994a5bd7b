"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state. The critical section never
  awaits, so it is also atomic for coroutines sharing the event loop.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from backend.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _WindowState:
    window_start: float
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    A key's window opens with its first request and lasts ``window_seconds``.
    Requests inside the window are counted; once the count exceeds ``limit``
    the key is rejected until the window ends, and the next request after that
    opens a fresh window.

    Expired windows are replaced lazily when their key shows up again. Keys
    that never come back are dropped by a sweep that runs every
    ``sweep_interval`` calls to ``consume``.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
        sweep_interval: int = 1000,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed units per window.
            window_seconds: Size of the fixed window in seconds.
            clock: Time source function returning UNIX time in seconds.
            sweep_interval: Consume calls between sweeps of expired windows.

        Raises:
            ValueError: If limit, window_seconds or sweep_interval are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if sweep_interval < 1:
            raise ValueError("sweep_interval must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._lock = threading.Lock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._calls_since_sweep = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def _is_expired(self, state: _WindowState, now: float) -> bool:
        return now >= state.window_start + self._window_seconds

    def _get_or_reset_state(self, key: str, now: float) -> _WindowState:
        """Get the current window for key, opening a new one if absent or expired."""
        state = self._state_by_key.get(key)
        if state is None or self._is_expired(state, now):
            state = _WindowState(window_start=now, count=0)
            self._state_by_key[key] = state
        return state

    def _sweep_expired_locked(self, now: float) -> None:
        expired = [k for k, s in self._state_by_key.items() if self._is_expired(s, now)]
        for key in expired:
            del self._state_by_key[key]
        if expired:
            logger.debug(
                "rate_limit.swept",
                extra={"evicted": len(expired), "tracked": len(self._state_by_key)},
            )

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Args:
            key: Unique identifier for rate limiting (e.g., client address).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            self._calls_since_sweep += 1
            if self._calls_since_sweep >= self._sweep_interval:
                self._calls_since_sweep = 0
                self._sweep_expired_locked(now)

            state = self._get_or_reset_state(key, now)
            reset_at = state.window_start + self._window_seconds

            # Rejected requests still count so a flood cannot probe the boundary
            state.count += cost
            remaining = max(0, self._limit - state.count)

            if state.count <= self._limit:
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    remaining=remaining,
                    reset_at=int(math.ceil(reset_at)),
                    retry_after_seconds=None,
                )

            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=0,
                reset_at=int(math.ceil(reset_at)),
                retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
            )

    def active_windows(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for s in self._state_by_key.values() if not self._is_expired(s, now))

    def tracked_keys(self) -> int:
        """Number of keys currently held in memory, expired or not."""
        with self._lock:
            return len(self._state_by_key)
