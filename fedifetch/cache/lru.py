"""Bounded in-memory cache with LRU eviction and per-entry expiry."""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar


K = TypeVar("K")
V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[K, V]):
    """A single cached value.

    Attributes:
        key: Cache key.
        value: Cached value.
        inserted_at: Clock reading when the value was stored.
        expires_at: Clock reading after which the entry is stale, or None.
    """

    key: K
    value: V
    inserted_at: float
    expires_at: float | None

    def is_expired(self, now: float) -> bool:
        """Check if the entry is past its expiry."""
        return self.expires_at is not None and now >= self.expires_at


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache statistics."""

    size: int
    max_size: int
    ttl_seconds: float
    hits: int
    misses: int
    evictions: int


class BoundedCache(Generic[K, V]):
    """Fixed-capacity key/value store.

    Least-recently-used entries are evicted first once capacity is reached;
    both ``get`` and ``set`` count as a use. Entries older than the TTL
    behave as absent and are dropped when touched.

    Thread-safe: every operation holds an internal lock for its duration.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries (must be positive).
            ttl_seconds: Entry lifetime in seconds; 0 disables expiry.
            clock: Monotonic clock returning seconds.

        Raises:
            ValueError: If max_size is not positive or ttl_seconds is negative.
        """
        if max_size < 1:
            msg = f"max_size must be positive, got {max_size}"
            raise ValueError(msg)
        if ttl_seconds < 0:
            msg = f"ttl_seconds must not be negative, got {ttl_seconds}"
            raise ValueError(msg)

        self._max_size = max_size
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[K, CacheEntry[K, V]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_size(self) -> int:
        """Configured capacity."""
        return self._max_size

    @property
    def size(self) -> int:
        """Number of stored entries, including any not yet pruned."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size

    def get(self, key: K) -> V | None:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: K, value: V) -> None:
        """Store a value, evicting least-recently-used entries if full."""
        with self._lock:
            now = self._clock()
            expires_at = now + self._ttl_seconds if self._ttl_seconds > 0 else None

            if key in self._entries:
                del self._entries[key]

            while len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)
                self._evictions += 1

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                inserted_at=now,
                expires_at=expires_at,
            )

    def has(self, key: K) -> bool:
        """Check for a live entry without updating recency."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def delete(self, key: K) -> bool:
        """Remove a key. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def prune(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def keys(self) -> Iterator[K]:
        """Snapshot of keys, least recently used first."""
        with self._lock:
            return iter(list(self._entries))

    def stats(self) -> CacheStats:
        """Return cache statistics."""
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self._max_size,
                ttl_seconds=self._ttl_seconds,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )
