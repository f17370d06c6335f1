"""
News fetcher - the service entry point for headlines, categories and search.

Wires the provider fallback chain to the two-tier cache and collapses
concurrent identical requests into one provider call:

    fetcher = NewsFetcher()
    response = fetcher.get_by_category("technology", page=1, page_size=20)
    response.articles, response.source, response.provider

Empty results are never cached. When every provider fails, the
persistent cache is consulted with a wider freshness window.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from config.categories import UI_CATEGORIES
from config.settings import get_settings
from providers.base import Article
from providers.cache import get_response_cache
from src.data.provider_manager import ProviderManager, get_provider_manager
from src.storage.article_store import ArticleStore
from src.storage.tiered_cache import NAMESPACE, CacheLookup, TieredArticleCache
from src.utils.dedup import RequestDeduplicator
from utils.url_validator import normalize_url


@dataclass
class NewsResponse:
    articles: List[Article] = field(default_factory=list)
    source: str = "none"
    age: Optional[str] = None
    provider: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "articles": [a.to_dict() for a in self.articles],
            "count": len(self.articles),
            "source": self.source,
            "age": self.age,
            "provider": self.provider,
            "error": self.error,
        }


def _deduplicate(articles: List[Article]) -> List[Article]:
    """Deduplicate articles by URL; http/https and trailing-slash variants match."""
    seen_urls = set()
    unique = []
    for article in articles:
        url = normalize_url(article.url) or article.url
        if url not in seen_urls:
            seen_urls.add(url)
            unique.append(article)
    return unique


def _normalize_query(query: str) -> str:
    return " ".join(query.lower().split())


class NewsFetcher:
    """
    Fetches news through the provider chain with caching.

    Dependencies default to the process-wide singletons; tests pass their own.
    """

    def __init__(self, manager: Optional[ProviderManager] = None,
                 cache: Optional[TieredArticleCache] = None,
                 deduplicator: Optional[RequestDeduplicator] = None):
        settings = get_settings()
        self.manager = manager or get_provider_manager()
        if cache is None:
            cache = TieredArticleCache(
                memory=get_response_cache(),
                store=ArticleStore(settings.cache_db_path, expiry_days=settings.persistent_cache_days),
                max_age_hours=settings.cache_max_age_hours,
                fallback_max_age_hours=settings.fallback_max_age_hours,
                memory_ttl=settings.memory_cache_ttl,
            )
        self.cache = cache
        self.deduplicator = deduplicator or RequestDeduplicator()

    @staticmethod
    def _response(lookup: CacheLookup) -> NewsResponse:
        return NewsResponse(
            articles=_deduplicate(lookup.data),
            source=lookup.source,
            age=lookup.age,
            provider=lookup.provider,
            error=lookup.error,
        )

    def get_headlines(self, page: int = 1, page_size: int = 20) -> NewsResponse:
        key = f"news:headlines:{page}:{page_size}"
        lookup = self.deduplicator.run(key, lambda: self.cache.get_or_fetch(
            key,
            lambda: self.manager.fetch_headlines_with_fallback(page=page, page_size=page_size),
            category="general",
            limit=page_size,
            offset=(page - 1) * page_size,
        ))
        response = self._response(lookup)
        logger.info(f"Headlines page {page}: {len(response.articles)} articles ({response.source})")
        return response

    def get_by_category(self, category: str, page: int = 1, page_size: int = 20) -> NewsResponse:
        category = (category or "general").lower()
        if category not in UI_CATEGORIES:
            logger.warning(f"Unknown category '{category}', using general")
            category = "general"

        key = f"news:category:{category}:{page}:{page_size}"
        lookup = self.deduplicator.run(key, lambda: self.cache.get_or_fetch(
            key,
            lambda: self.manager.fetch_by_category_with_fallback(
                category, page=page, page_size=page_size
            ),
            category=category,
            limit=page_size,
            offset=(page - 1) * page_size,
        ))
        response = self._response(lookup)
        logger.info(f"Category {category} page {page}: {len(response.articles)} articles ({response.source})")
        return response

    def search(self, query: str, page: int = 1, page_size: int = 20) -> NewsResponse:
        """Keyword search. Cached in memory only; never read from or written to the article store."""
        if not query or not query.strip():
            raise ValueError("Search query is required")

        key = f"news:search:{_normalize_query(query)}:{page}:{page_size}"
        return self.deduplicator.run(key, lambda: self._search(key, query.strip(), page, page_size))

    def _search(self, key: str, query: str, page: int, page_size: int) -> NewsResponse:
        cached = self.cache.memory.get(NAMESPACE, key)
        if cached:
            return NewsResponse(articles=_deduplicate(cached), source="memory", age="fresh")

        try:
            result = self.manager.search_with_fallback(query, page=page, page_size=page_size)
        except Exception as e:
            logger.warning(f"Search '{query}' failed: {e}")
            return NewsResponse(error=str(e))

        articles = _deduplicate(result.articles)
        # Stored rows carry no query, so search hits would resurface as headlines
        if articles:
            self.cache.memory.set(NAMESPACE, key, articles, ttl_seconds=self.cache.memory_ttl)
        logger.info(f"Search '{query}': {len(articles)} articles from {result.provider}")
        return NewsResponse(articles=articles, source="api", age="fresh", provider=result.provider)
