"""
In-memory time-to-live caches for range scan results and device identities.

Entries expire lazily: an expired entry is dropped the first time it is read
(or counted by ``stats()``), there is no background sweeper.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional


@dataclass
class CacheEntry:
    """
    A cached value with its insertion time.

    Attributes:
        value: Cached value
        inserted_at: Clock reading when the value was stored
        ttl: Lifetime in seconds
    """
    value: Any
    inserted_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl


@dataclass(frozen=True)
class CacheStats:
    """Counters reported by ResultCache.stats()."""
    keys: int
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"keys": self.keys, "hits": self.hits, "misses": self.misses, "hit_rate": self.hit_rate}


class ResultCache:
    """
    Thread-safe key/value store with a per-entry time-to-live.

    Concurrent writers to the same key are serialized by the cache lock; the
    last writer wins.
    """

    def __init__(self, default_ttl: float, name: str = "cache",
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            default_ttl: Lifetime in seconds of entries stored without an explicit ttl
            name: Label used in log messages and statistics
            clock: Monotonic time source, replaceable in tests
        """
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        self.default_ttl = default_ttl
        self.name = name
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        """
        Return the value stored under key, or None when absent or expired.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                entry = None

            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store value under key.

        Args:
            key: Cache key
            value: Value to store
            ttl: Lifetime in seconds; defaults to the cache's default_ttl
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        with self._lock:
            self._entries[key] = CacheEntry(value=value, inserted_at=self._clock(), ttl=ttl)

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            for key in [k for k, entry in self._entries.items() if entry.is_expired(now)]:
                del self._entries[key]
            return CacheStats(keys=len(self._entries), hits=self._hits, misses=self._misses)

    def __len__(self) -> int:
        return self.stats().keys
