"""In-process request counters feeding the metrics snapshot."""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class RequestStatsSnapshot:
    total_requests: int
    average_response_time_ms: int


class RequestStats:
    """Thread-safe running totals of served requests and their latency."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_requests = 0
        self._total_duration_ms = 0.0

    def record(self, duration_ms: float) -> None:
        """Count one finished request that took ``duration_ms``."""
        with self._lock:
            self._total_requests += 1
            self._total_duration_ms += max(0.0, duration_ms)

    def snapshot(self) -> RequestStatsSnapshot:
        with self._lock:
            if self._total_requests == 0:
                return RequestStatsSnapshot(total_requests=0, average_response_time_ms=0)
            average = self._total_duration_ms / self._total_requests
            return RequestStatsSnapshot(
                total_requests=self._total_requests,
                average_response_time_ms=int(round(average)),
            )
