"""
Two-tier article cache: memory (L1) in front of DuckDB (L2).

    L1  ResponseCache, 15 minute TTL, per request key
    L2  ArticleStore, rows readable for 7 days, filtered by fetch age

Reads fall through L1 -> L2; L2 hits are promoted into L1. When a fetch
from the providers fails or comes back empty, L2 is consulted again with
a wider freshness window so callers still get something to show.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from providers.base import Article
from providers.cache import ResponseCache
from src.storage.article_store import ArticleStore
from utils.error_handler import log_exception
from utils.platform import ensure_utc, now_utc

NAMESPACE = "articles"


@dataclass
class CacheLookup:
    """Result of a cache read or get_or_fetch."""
    data: List[Article] = field(default_factory=list)
    source: str = "none"  # memory / persistent / api / none / error
    age: Optional[str] = None
    provider: Optional[str] = None
    error: Optional[str] = None

    @property
    def hit(self) -> bool:
        return bool(self.data)


def calculate_age(fetched_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Bucket how long ago something was fetched."""
    if fetched_at is None:
        return "unknown"

    now = now or now_utc()
    hours = (now - ensure_utc(fetched_at)).total_seconds() / 3600

    if hours < 1:
        return "fresh"
    if hours < 6:
        return "recent"
    if hours < 24:
        return "today"
    if hours < 48:
        return "yesterday"
    return "stale"


class TieredArticleCache:

    def __init__(self, memory: ResponseCache, store: ArticleStore,
                 max_age_hours: float = 2.0, fallback_max_age_hours: float = 6.0,
                 memory_ttl: int = 900):
        self.memory = memory
        self.store = store
        self.max_age_hours = max_age_hours
        self.fallback_max_age_hours = fallback_max_age_hours
        self.memory_ttl = memory_ttl

    def get(self, key: str, category: Optional[str] = None, limit: int = 20,
            max_age_hours: Optional[float] = None, offset: int = 0) -> CacheLookup:
        """Look up a request key in L1, then L2.

        L2 rows are not keyed by request, so `offset` selects the slice that
        belongs to the requested page.
        """
        cached = self.memory.get(NAMESPACE, key)
        if cached:
            logger.debug(f"L1 cache HIT (memory): {key}")
            return CacheLookup(data=cached, source="memory", age="fresh")

        max_age = self.max_age_hours if max_age_hours is None else max_age_hours
        try:
            if category and category != "general":
                rows = self.store.get_by_category(category, limit, max_age, offset=offset)
            else:
                rows = self.store.get_recent(limit, max_age, offset=offset)

            if not rows:
                logger.debug(f"L2 cache MISS (persistent): {category or 'general'}")
                return CacheLookup()

            articles = [row.to_article() for row in rows]
            self.store.record_access(a.url for a in articles)
            self.memory.set(NAMESPACE, key, articles, ttl_seconds=self.memory_ttl)

            logger.debug(f"L2 cache HIT (persistent): {len(articles)} articles for {key}")
            return CacheLookup(
                data=articles,
                source="persistent",
                age=calculate_age(rows[0].fetched_at),
            )
        except Exception as e:
            log_exception(e, context="persistent cache read")
            return CacheLookup(source="error", error=str(e))

    def set(self, key: str, articles: List[Article], provider: str,
            memory_ttl: Optional[int] = None) -> None:
        """Write both tiers. Empty lists are never cached."""
        if not articles:
            logger.warning("Attempted to cache empty article list")
            return

        self.memory.set(NAMESPACE, key, articles, ttl_seconds=memory_ttl or self.memory_ttl)
        try:
            result = self.store.bulk_upsert(articles, provider)
            logger.debug(
                f"L2 cached {result['total']} articles: "
                f"{result['inserted']} new, {result['updated']} updated"
            )
        except Exception as e:
            log_exception(e, context="persistent cache write")

    def get_or_fetch(self, key: str, fetcher: Callable[[], Any],
                     category: Optional[str] = None, limit: int = 20,
                     offset: int = 0) -> CacheLookup:
        """Cache, else fetcher, else the persistent cache with a wider window.

        ``fetcher`` returns an object with ``articles`` and ``provider``
        (a FetchResult) or raises.
        """
        cached = self.get(key, category=category, limit=limit, offset=offset)
        if cached.hit:
            return cached

        try:
            result = fetcher()
        except Exception as e:
            logger.warning(f"Fetch failed, trying extended persistent cache: {e}")
            fallback = self.get(key, category=category, limit=limit,
                                max_age_hours=self.fallback_max_age_hours, offset=offset)
            if fallback.hit:
                logger.info(f"Using cached fallback ({len(fallback.data)} articles)")
                fallback.age = "fallback"
                return fallback
            return CacheLookup(source="none", error=str(e))

        articles = getattr(result, "articles", None) or []
        provider = getattr(result, "provider", None) or "unknown"

        if not articles:
            logger.warning("Providers returned no articles")
            recent = self.get(key, category=category, limit=limit,
                              max_age_hours=self.fallback_max_age_hours, offset=offset)
            if recent.hit:
                recent.age = "recent"
                return recent
            return CacheLookup(source="none")

        self.set(key, articles, provider)
        return CacheLookup(data=articles, source="api", age="fresh", provider=provider)

    def clear(self, key: Optional[str] = None) -> None:
        """Clear L1 only; L2 rows expire on their own."""
        if key:
            self.memory.delete(NAMESPACE, key)
            logger.debug(f"Cleared memory cache: {key}")
        else:
            self.memory.invalidate(NAMESPACE)
            logger.debug("Cleared all memory cache")

    def purge_expired(self) -> Dict[str, int]:
        return {
            "memory": self.memory.purge_expired(),
            "persistent": self.store.purge_expired(),
        }

    def stats(self) -> Dict[str, Any]:
        return {
            "memory": self.memory.stats(),
            "persistent": self.store.stats(),
            "timestamp": now_utc().isoformat(),
        }
