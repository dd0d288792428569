"""Base cache interface and the bounded in-memory TTL cache behind every cover cache."""

import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

K = TypeVar("K")  # Key type
V = TypeVar("V")  # Value type

Clock = Callable[[], float]


class ExpiryPolicy(Enum):
    """When the TTL clock of an entry restarts."""

    AFTER_WRITE = "after_write"
    AFTER_ACCESS = "after_access"


@dataclass
class CacheEntry[V]:
    """Cache entry with value and expiry bookkeeping."""

    value: V
    written_at: float
    touched_at: float

    # Hey future me, expiry is measured from written_at for AFTER_WRITE caches and from the
    # last read (touched_at) for AFTER_ACCESS caches. Timestamps come from a monotonic clock,
    # so wall clock jumps (NTP, container restore) can't mass-expire entries.
    def is_expired(self, now: float, ttl_seconds: float, policy: ExpiryPolicy) -> bool:
        """Check if cache entry is expired."""
        anchor = self.touched_at if policy is ExpiryPolicy.AFTER_ACCESS else self.written_at
        return now - anchor >= ttl_seconds


class BaseCache[K, V](ABC):
    """Base cache interface for all cache implementations.

    Every operation is synchronous and non-blocking: a cache read is the fast path
    of cover resolution and must not suspend.
    """

    @abstractmethod
    def get(self, key: K) -> V | None:
        """Get value from cache.

        Returns:
            Cached value if found and not expired, None otherwise (never raises on a miss)
        """
        pass

    @abstractmethod
    def put(self, key: K, value: V) -> None:
        """Store value, overwriting any existing entry."""
        pass

    @abstractmethod
    def invalidate(self, key: K) -> bool:
        """Remove key. Idempotent.

        Returns:
            True if an entry was removed, False if there was none
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all entries from cache."""
        pass

    def contains(self, key: K) -> bool:
        """Check if key exists and is not expired."""
        return self.get(key) is not None


class BoundedTTLCache(BaseCache[K, V]):
    """Thread-safe, size bounded, time bounded in-memory cache with LRU eviction.

    Args:
        name: Used in stats and logs
        capacity: Max number of entries; the least recently used entry is evicted
            when a put() would exceed it, regardless of its remaining TTL
        ttl_seconds: Lifetime of an entry
        policy: Whether the lifetime restarts on read (AFTER_ACCESS) or only on write
        clock: Monotonic time source, injectable for tests
    """

    # Listen up future me, this is IN-MEMORY ONLY! Restart = all cache lost, nothing shared across
    # processes. The lock is a threading.Lock (not asyncio.Lock): callers hit this from sync code
    # AND from worker tasks, and every critical section is a handful of dict ops with no await
    # inside. Always hold self._lock before touching _entries!
    def __init__(
        self,
        name: str,
        capacity: int,
        ttl_seconds: float,
        policy: ExpiryPolicy = ExpiryPolicy.AFTER_WRITE,
        clock: Clock = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.name = name
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self.policy = policy
        self._clock = clock
        self._entries: OrderedDict[K, CacheEntry[V]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    # Yo, get() has side effects! An expired entry is deleted on read, a live entry moves to the
    # MRU end, and for AFTER_ACCESS caches its TTL restarts. None means "missing OR expired" -
    # callers can't tell the difference and shouldn't need to.
    def get(self, key: K) -> V | None:
        """Get value from cache."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            now = self._clock()
            if entry.is_expired(now, self.ttl_seconds, self.policy):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None

            entry.touched_at = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    # Hey, put() ALWAYS overwrites and restarts both clocks. When we're over capacity we pop from
    # the LRU end until we fit again - that's the only place evictions happen.
    def put(self, key: K, value: V) -> None:
        """Set value in cache."""
        with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(value=value, written_at=now, touched_at=now)
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)
                self._evictions += 1

    def invalidate(self, key: K) -> bool:
        """Delete value from cache."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Clear all entries from cache."""
        with self._lock:
            self._entries.clear()

    # Yo, manual garbage collection. get() already drops expired entries lazily; this sweeps
    # everything in one go. Collect keys first, then delete - don't mutate while iterating.
    def cleanup_expired(self) -> int:
        """Remove expired entries from cache.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired_keys = [
                key
                for key, entry in self._entries.items()
                if entry.is_expired(now, self.ttl_seconds, self.policy)
            ]
            for key in expired_keys:
                del self._entries[key]
            self._expirations += len(expired_keys)
            return len(expired_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        with self._lock:
            return {
                "name": self.name,
                "size": len(self._entries),
                "capacity": self.capacity,
                "ttl_seconds": self.ttl_seconds,
                "policy": self.policy.value,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
            }

    def __repr__(self) -> str:
        return (
            f"BoundedTTLCache(name={self.name!r}, capacity={self.capacity}, "
            f"ttl={self.ttl_seconds}s, policy={self.policy.value})"
        )
