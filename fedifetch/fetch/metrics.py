"""Metrics collection for the HTTP fetch layer."""

import threading
from dataclasses import dataclass, field

from fedifetch.errors import FetchErrorClass


@dataclass
class FetchMetrics:
    """Counters for outbound fetch operations.

    One instance is owned by each invoker and shared with the components
    wired to it. All updates are lock-guarded.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_revalidated_total: int = 0
    http_retry_total: int = 0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_bytes_total: int = 0
    http_duration_ms_total: float = 0.0
    http_request_count: int = 0
    http_fetch_count: int = 0
    dedup_joined_total: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def record_request(self, status_code: int, bytes_received: int) -> None:
        """Record a completed HTTP exchange.

        Args:
            status_code: HTTP status code.
            bytes_received: Number of body bytes received.
        """
        with self._lock:
            self.http_requests_total[status_code] = (
                self.http_requests_total.get(status_code, 0) + 1
            )
            self.http_bytes_total += bytes_received
            self.http_request_count += 1

    def record_revalidated(self) -> None:
        """Record a 304 served from the conditional cache."""
        with self._lock:
            self.http_revalidated_total += 1

    def record_retry(self) -> None:
        """Record a retry attempt."""
        with self._lock:
            self.http_retry_total += 1

    def record_failure(self, error_class: FetchErrorClass) -> None:
        """Record a fetch that failed for good."""
        key = error_class.value
        with self._lock:
            self.http_failures_total[key] = self.http_failures_total.get(key, 0) + 1

    def record_duration(self, duration_ms: float) -> None:
        """Record the duration of one fetch, retries included."""
        with self._lock:
            self.http_duration_ms_total += duration_ms
            self.http_fetch_count += 1

    def record_dedup_join(self) -> None:
        """Record a caller that joined an in-flight request."""
        with self._lock:
            self.dedup_joined_total += 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "http_requests_total": dict(self.http_requests_total),
                "http_revalidated_total": self.http_revalidated_total,
                "http_retry_total": self.http_retry_total,
                "http_failures_total": dict(self.http_failures_total),
                "http_bytes_total": self.http_bytes_total,
                "http_duration_ms_total": self.http_duration_ms_total,
                "http_request_count": self.http_request_count,
                "http_fetch_count": self.http_fetch_count,
                "dedup_joined_total": self.dedup_joined_total,
            }

    @property
    def avg_duration_ms(self) -> float:
        """Average duration of completed fetches in milliseconds."""
        if self.http_fetch_count == 0:
            return 0.0
        return self.http_duration_ms_total / self.http_fetch_count
