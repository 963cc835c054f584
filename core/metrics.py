"""
In-process counters for cache efficiency and API call timing
"""
import logging
import threading
from typing import Any, Dict

logger = logging.getLogger(__name__)


class CacheMetrics:
    """Hit/miss counters for an in-memory cache."""

    def __init__(self, name: str):
        self.name = name
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()

    def record_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def reset(self) -> None:
        with self._lock:
            self.hits = 0
            self.misses = 0

    def snapshot(self) -> Dict[str, Any]:
        return {
            "cache": self.name,
            "cache_hits": self.hits,
            "cache_misses": self.misses,
            "cache_hit_rate": round(self.hit_rate, 4),
        }


class ApiCallMetrics:
    """Aggregated timings of handled requests, with slow-call detection."""

    def __init__(self, slow_threshold_ms: float = 1000.0):
        self.slow_threshold_ms = slow_threshold_ms
        self.total_calls = 0
        self.failed_calls = 0
        self.slow_calls = 0
        self.total_duration_ms = 0.0
        self._lock = threading.Lock()

    def record(self, endpoint: str, duration_ms: float, status_code: int) -> bool:
        """Record one call; returns True when the call was slow."""
        is_slow = duration_ms > self.slow_threshold_ms
        with self._lock:
            self.total_calls += 1
            self.total_duration_ms += duration_ms
            if status_code >= 400:
                self.failed_calls += 1
            if is_slow:
                self.slow_calls += 1

        if is_slow:
            logger.warning(f"Slow API call: {endpoint} took {duration_ms:.0f}ms (status {status_code})")
        return is_slow

    @property
    def average_duration_ms(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.total_duration_ms / self.total_calls

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_calls": self.total_calls,
            "failed_calls": self.failed_calls,
            "slow_calls": self.slow_calls,
            "average_duration_ms": round(self.average_duration_ms, 2),
        }
