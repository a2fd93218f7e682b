"""Bounded LRU cache with lazy TTL expiry for query results."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict

from docrecall.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)


class _Missing:
    """Sentinel type returned by :meth:`QueryCache.get` for absent keys."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass(slots=True)
class CacheConfig:
    max_size: int = 100
    ttl_ms: int = 300_000  # 5 minutes

    def __post_init__(self) -> None:
        if self.max_size <= 0:
            raise ConfigurationError("max_size must be greater than 0")
        if self.ttl_ms <= 0:
            raise ConfigurationError("ttl_ms must be greater than 0")


@dataclass(slots=True)
class CacheEntry:
    key: str
    value: Any
    inserted_at: float
    last_accessed_at: float
    ttl_ms: int


@dataclass(slots=True)
class CacheStats:
    hits: int
    misses: int
    evictions: int
    size: int
    max_size: int
    hit_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": self.hit_rate,
        }


class QueryCache:
    """LRU cache whose entries also expire ``ttl_ms`` after their last write.

    Expiry is discovered lazily: an expired entry is purged when it is next
    looked up, when :meth:`size` is called, or when LRU eviction reaches it.
    All operations hold a single lock, so the cache can be shared between the
    threads serving concurrent queries.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_size(self) -> int:
        return self.config.max_size

    @property
    def ttl_ms(self) -> int:
        return self.config.ttl_ms

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at > entry.ttl_ms

    def _lookup(self, key: str) -> CacheEntry | None:
        """Return the live entry for ``key`` and mark it most recently used."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._now_ms()
        if self._is_expired(entry, now):
            del self._entries[key]
            LOGGER.debug("Cache entry expired: %s", key)
            return None
        entry.last_accessed_at = now
        self._entries.move_to_end(key)
        return entry

    def get(self, key: str, default: Any = MISSING) -> Any:
        """Return the cached value, or ``default`` when absent or expired."""
        with self._lock:
            entry = self._lookup(key)
            if entry is None:
                self._misses += 1
                return default
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store ``value``; overwriting resets the entry's age."""
        with self._lock:
            now = self._now_ms()
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.config.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                LOGGER.debug("Evicted least recently used cache entry: %s", evicted)
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                inserted_at=now,
                last_accessed_at=now,
                ttl_ms=self.config.ttl_ms,
            )

    def has(self, key: str) -> bool:
        """Existence check; refreshes recency but leaves hit/miss counters alone."""
        with self._lock:
            return self._lookup(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry. Statistics are kept."""
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        """Number of live entries, purging expired ones first."""
        with self._lock:
            now = self._now_ms()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
            return len(self._entries)

    def get_stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._entries),
                max_size=self.config.max_size,
                hit_rate=self._hits / total if total > 0 else 0.0,
            )

    def reset_stats(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)
