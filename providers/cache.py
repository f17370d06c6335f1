"""
In-memory TTL cache for fetched article lists (L1).

Entries live under (namespace, key) where the key is a request key such as
"news:category:business:1:20", compared case-insensitively. Default TTL
is 15 minutes. When full, expired entries go first, then the oldest.
"""
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Optional, Tuple

from loguru import logger


@dataclass
class CacheEntry:
    value: Any
    namespace: str
    stored_at: float       # time.monotonic()
    expires_at: float

    @property
    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    @property
    def age_seconds(self) -> float:
        return time.monotonic() - self.stored_at


class ResponseCache:
    """Thread-safe TTL map with hit/miss accounting.

        cache = ResponseCache(default_ttl_seconds=900)
        articles = cache.get("articles", "news:headlines:1:20")
        if articles is None:
            articles = fetch()
            cache.set("articles", "news:headlines:1:20", articles)
    """

    def __init__(self, default_ttl_seconds: int = 900, max_entries: int = 500):
        self._entries: "OrderedDict[Tuple[str, str], CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self._default_ttl = default_ttl_seconds
        self._max_entries = max_entries
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _slot(namespace: str, key: str) -> Tuple[str, str]:
        return namespace, key.strip().lower()

    def get(self, namespace: str, key: str) -> Optional[Any]:
        """Cached value, or None when missing or expired."""
        entry = self.get_entry(namespace, key)
        return None if entry is None else entry.value

    def get_entry(self, namespace: str, key: str) -> Optional[CacheEntry]:
        slot = self._slot(namespace, key)
        with self._lock:
            entry = self._entries.get(slot)
            if entry is not None and entry.is_expired:
                del self._entries[slot]
                entry = None
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
            return entry

    def set(self, namespace: str, key: str, value: Any,
            ttl_seconds: Optional[float] = None):
        ttl = ttl_seconds or self._default_ttl
        slot = self._slot(namespace, key)
        now = time.monotonic()
        with self._lock:
            self._entries.pop(slot, None)
            if len(self._entries) >= self._max_entries:
                self._drop_expired()
            while len(self._entries) >= self._max_entries:
                self._entries.popitem(last=False)
            self._entries[slot] = CacheEntry(value=value, namespace=namespace,
                                             stored_at=now, expires_at=now + ttl)

    def delete(self, namespace: str, key: str) -> bool:
        """Remove one entry. True if it was present."""
        with self._lock:
            return self._entries.pop(self._slot(namespace, key), None) is not None

    def invalidate(self, namespace: Optional[str] = None):
        """Drop every entry, or every entry of one namespace."""
        with self._lock:
            if namespace is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                doomed = [slot for slot in self._entries if slot[0] == namespace]
                for slot in doomed:
                    del self._entries[slot]
                removed = len(doomed)
        logger.debug(f"L1 cache: invalidated {removed} entries"
                     + (f" in '{namespace}'" if namespace else ""))

    def purge_expired(self) -> int:
        with self._lock:
            return self._drop_expired()

    def _drop_expired(self) -> int:
        # Caller holds the lock
        doomed = [slot for slot, entry in self._entries.items() if entry.is_expired]
        for slot in doomed:
            del self._entries[slot]
        return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            by_namespace: Dict[str, int] = {}
            for namespace, _ in self._entries:
                by_namespace[namespace] = by_namespace.get(namespace, 0) + 1
            return {
                "entries": len(self._entries),
                "max_entries": self._max_entries,
                "ttl_seconds": self._default_ttl,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups * 100 if lookups else 0.0,
                "by_namespace": by_namespace,
            }

    def format_stats_report(self) -> str:
        s = self.stats()
        # Every hit is a provider call that did not spend quota
        return (f"  L1 cache:  {s['hit_rate']:.0f}% hit rate, "
                f"{s['entries']}/{s['max_entries']} entries, saved ~{s['hits']} API calls")


_response_cache: Optional[ResponseCache] = None


def get_response_cache() -> ResponseCache:
    """Process-wide L1 cache sized from settings."""
    global _response_cache
    if _response_cache is None:
        from config.settings import get_settings
        settings = get_settings()
        _response_cache = ResponseCache(
            default_ttl_seconds=settings.memory_cache_ttl,
            max_entries=settings.memory_cache_max_entries,
        )
    return _response_cache
