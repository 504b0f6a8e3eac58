"""Conditional request cache (ETag / Last-Modified revalidation).

Encapsulates the cache logic for conditional requests: building
``If-None-Match``/``If-Modified-Since`` headers from a stored record and
storing a new record when a response carries revalidation tokens.
"""

import time
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from fedifetch.cache.lru import BoundedCache, CacheStats
from fedifetch.fetch.models import ConditionalCacheRecord
from fedifetch.fetch.redact import redact_url_credentials


logger = structlog.get_logger()


class ConditionalCache:
    """Revalidation records keyed by request URL.

    Records are bounded by count but never expire on time; a record is only
    useful together with a server that answers 304.
    """

    def __init__(
        self,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the conditional cache.

        Args:
            max_size: Maximum number of URLs remembered.
            clock: Monotonic clock used to stamp records.
        """
        self._records: BoundedCache[str, ConditionalCacheRecord] = BoundedCache(
            max_size=max_size, clock=clock
        )
        self._clock = clock
        self._log = logger.bind(component="cache")

    def get(self, url: str) -> ConditionalCacheRecord | None:
        """Return the record for a URL, if any."""
        record = self._records.get(url)
        if record is not None:
            self._log.debug(
                "cache_lookup",
                url=redact_url_credentials(url),
                has_etag=record.etag is not None,
                has_last_modified=record.last_modified is not None,
            )
        return record

    def store(
        self,
        url: str,
        payload: Any,
        headers: Mapping[str, str],
    ) -> ConditionalCacheRecord | None:
        """Store a record if the response carries revalidation tokens.

        Args:
            url: Request URL.
            payload: Decoded JSON body.
            headers: Response headers (case-insensitive mapping).

        Returns:
            The stored record, or None if the response had no tokens.
        """
        etag = headers.get("etag")
        last_modified = headers.get("last-modified")
        if not etag and not last_modified:
            return None

        record = ConditionalCacheRecord(
            payload=payload,
            etag=etag,
            last_modified=last_modified,
            cached_at=self._clock(),
        )
        self._records.set(url, record)
        self._log.debug(
            "cache_update",
            url=redact_url_credentials(url),
            etag=etag is not None,
            last_modified=last_modified is not None,
        )
        return record

    def invalidate(self, url: str) -> bool:
        """Forget the record for a URL."""
        return self._records.delete(url)

    def clear(self) -> None:
        """Forget every record."""
        self._records.clear()

    def stats(self) -> CacheStats:
        """Return statistics of the underlying cache."""
        return self._records.stats()
