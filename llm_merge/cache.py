"""
TTL cache for merge results.
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass
class CacheEntry:
    """A cached value with its expiry time."""
    value: Any
    created_at: float
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0
    evictions: int = 0


class ResultCache:
    """
    Size-bounded cache with time-based expiry.

    A ``ttl`` of 0 disables expiry; a ``max_size`` of 0 disables caching.
    """

    def __init__(
        self,
        ttl: float = 3600.0,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._cache: Dict[str, CacheEntry] = {}
        self.stats = CacheStats()

    @property
    def enabled(self) -> bool:
        return self.max_size > 0

    def get(self, key: str) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            self.stats.misses += 1
            return None
        if entry.is_expired(self._clock()):
            del self._cache[key]
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return entry.value

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        while len(self._cache) >= self.max_size and key not in self._cache:
            oldest = min(self._cache, key=lambda k: self._cache[k].created_at)
            del self._cache[oldest]
            self.stats.evictions += 1

        now = self._clock()
        self._cache[key] = CacheEntry(
            value=value,
            created_at=now,
            expires_at=now + self.ttl if self.ttl else None
        )
        self.stats.writes += 1

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
