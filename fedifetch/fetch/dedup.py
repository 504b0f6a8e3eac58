"""Coalescing of concurrent identical requests."""

import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, TypeVar

import structlog

from fedifetch.fetch.metrics import FetchMetrics
from fedifetch.fetch.redact import redact_url_credentials


logger = structlog.get_logger()

T = TypeVar("T")


class InFlightDeduplicator:
    """Shares one outcome between concurrent callers of the same request.

    The first caller for a ``method:url`` key runs the operation on the
    calling thread; callers arriving before it settles block on the same
    future and receive the same value or the same exception. The key is
    removed as soon as the operation settles, so a later call starts a
    fresh request.
    """

    def __init__(self, metrics: FetchMetrics | None = None) -> None:
        self._in_flight: dict[str, Future[Any]] = {}
        self._lock = threading.Lock()
        self._metrics = metrics
        self._log = logger.bind(component="dedup")

    @staticmethod
    def make_key(method: str, url: str) -> str:
        """Build the in-flight key for a request."""
        return f"{method.upper()}:{url}"

    def dedupe(self, method: str, url: str, fn: Callable[[], T]) -> T:
        """Run ``fn`` unless an identical request is already in flight.

        Args:
            method: HTTP method.
            url: Request URL.
            fn: The operation performing the request.

        Returns:
            The shared result.

        Raises:
            Exception: Whatever the shared operation raised.
        """
        key = self.make_key(method, url)

        with self._lock:
            future = self._in_flight.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            if self._metrics is not None:
                self._metrics.record_dedup_join()
            self._log.debug(
                "dedup_joined", method=method, url=redact_url_credentials(url)
            )
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            self._settle(key)
            future.set_exception(e)
            raise
        self._settle(key)
        future.set_result(result)
        return result

    def pending_count(self) -> int:
        """Number of requests currently in flight."""
        with self._lock:
            return len(self._in_flight)

    def _settle(self, key: str) -> None:
        with self._lock:
            self._in_flight.pop(key, None)
