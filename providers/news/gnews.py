"""
GNews API provider plugin.

Free tier: 100 requests/day (we stop at 90), at most 10 articles per call.
Endpoints: /top-headlines, /search
"""
from typing import Any, Dict, List, Optional

from config.providers import get_provider_config
from providers.base import BaseNewsProvider

MAX_ARTICLES = 10


class GNewsProvider(BaseNewsProvider):
    """GNews.io - global aggregator, small pages."""

    KEY_PARAM = "token"
    DEFAULT_COUNTRY = "us"
    DEFAULT_LANGUAGE = "en"

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(get_provider_config("gnews"), api_key=api_key, **kwargs)

    def fetch_headlines(self, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        data = self._get("/top-headlines", {
            "country": self.DEFAULT_COUNTRY,
            "lang": self.DEFAULT_LANGUAGE,
            "max": min(page_size, MAX_ARTICLES),
        })
        return [self.normalize_article(a) for a in self._articles(data)]

    def fetch_by_category(self, category: str, page: int = 1,
                          page_size: int = 20) -> List[Dict[str, Any]]:
        data = self._get("/top-headlines", {
            "category": self.map_category(category),
            "country": self.DEFAULT_COUNTRY,
            "lang": self.DEFAULT_LANGUAGE,
            "max": min(page_size, MAX_ARTICLES),
        }, category=category)
        return [self.normalize_article(a, category=category) for a in self._articles(data)]

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        query = self._require_query(query)
        data = self._get("/search", {
            "q": query,
            "lang": self.DEFAULT_LANGUAGE,
            "max": min(page_size, MAX_ARTICLES),
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
            "url_to_image": raw.get("image"),
            "published_at": raw.get("publishedAt"),
            "source": {
                "id": self.name,
                "name": source.get("name") or self.display_name,
            },
            # No author in the free tier
            "author": "GNews",
            "category": category or raw.get("category") or "general",
            "provider": self.name,
        }
