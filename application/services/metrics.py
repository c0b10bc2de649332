import logging
import threading

from domain.models.currency import MetricsSnapshot

logger = logging.getLogger(__name__)


class MetricsCollector:
    """Process-lifetime counters for the resolution engine."""

    def __init__(self):
        self._lock = threading.Lock()
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._network_success_count = 0
        self._cache_hit_count = 0
        self._error_count = 0
        self._cumulative_latency_ms = 0.0
        self._missing_rate_count = 0
        self._last_error: str | None = None

    def record_success(self, latency_ms: float) -> None:
        with self._lock:
            self._network_success_count += 1
            self._cumulative_latency_ms += latency_ms

    def record_cache_hit(self, latency_ms: float) -> None:
        with self._lock:
            self._cache_hit_count += 1
        logger.debug(f'Cache hit served in {latency_ms:.1f}ms')

    def record_error(self, latency_ms: float, reason: str) -> None:
        with self._lock:
            self._error_count += 1
            self._last_error = reason
        logger.debug(f'Resolution error after {latency_ms:.1f}ms: {reason}')

    def record_missing_rate(self, currency_code: str) -> None:
        """A conversion fell back to rate 1.0 because currency_code was not in the table."""
        with self._lock:
            self._missing_rate_count += 1
        logger.warning(f'No rate for {currency_code}, converted at 1.0')

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                network_success_count=self._network_success_count,
                cache_hit_count=self._cache_hit_count,
                error_count=self._error_count,
                cumulative_latency_ms=self._cumulative_latency_ms,
                missing_rate_count=self._missing_rate_count,
                last_error=self._last_error,
            )

    def reset(self) -> None:
        with self._lock:
            self._reset_counters()
