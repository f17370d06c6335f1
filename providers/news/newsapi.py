"""
NewsAPI.org provider plugin.

Free tier: 100 requests/day (we stop at 80).
Endpoints: /top-headlines for headlines and categories, /everything for search.
"""
from typing import Any, Dict, List, Optional

from loguru import logger

from config.providers import get_provider_config
from providers.base import BaseNewsProvider


class NewsAPIProvider(BaseNewsProvider):
    """NewsAPI.org - highest quality, smallest daily quota."""

    KEY_PARAM = "apiKey"
    DEFAULT_COUNTRY = "us"
    DEFAULT_LANGUAGE = "en"

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(get_provider_config("newsapi"), api_key=api_key, **kwargs)

    def fetch_headlines(self, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        data = self._get("/top-headlines", {
            "country": self.DEFAULT_COUNTRY,
            "pageSize": page_size,
            "page": page,
        })
        articles = self._articles(data)
        logger.debug(f"{self.display_name} returned {len(articles)} headlines")
        return [self.normalize_article(a) for a in articles]

    def fetch_by_category(self, category: str, page: int = 1,
                          page_size: int = 20) -> List[Dict[str, Any]]:
        data = self._get("/top-headlines", {
            "category": self.map_category(category),
            "country": self.DEFAULT_COUNTRY,
            "pageSize": page_size,
            "page": page,
        }, category=category)
        return [self.normalize_article(a, category=category) for a in self._articles(data)]

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        query = self._require_query(query)
        data = self._get("/everything", {
            "q": query,
            "language": self.DEFAULT_LANGUAGE,
            "sortBy": "relevancy",
            "pageSize": page_size,
            "page": page,
        })
        return [self.normalize_article(a) for a in self._articles(data)]

    def _articles(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not isinstance(data, dict) or not isinstance(data.get("articles"), list):
            raise self._invalid_format()
        return data["articles"]

    def normalize_article(self, raw: Dict[str, Any],
                          category: Optional[str] = None) -> Dict[str, Any]:
        source = raw.get("source") or {}
        return {
            "title": raw.get("title") or "",
            "description": raw.get("description") or raw.get("title") or "",
            "content": raw.get("content") or raw.get("description") or "",
            "url": raw.get("url") or "",
            "url_to_image": raw.get("urlToImage"),
            "published_at": raw.get("publishedAt"),
            "source": {
                "id": source.get("id") or self.name,
                "name": source.get("name") or self.display_name,
            },
            "author": raw.get("author") or "Unknown",
            "category": category or raw.get("category") or "general",
            "provider": self.name,
        }
