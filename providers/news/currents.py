"""
Currents API provider plugin.

Free tier: 600 requests/day (we stop at 500), up to 200 articles per page.
Endpoints: /latest-news, /search
"""
from typing import Any, Dict, List, Optional

from config.providers import get_provider_config
from providers.base import BaseNewsProvider

MAX_PAGE_SIZE = 200


class CurrentsProvider(BaseNewsProvider):

    KEY_PARAM = "apiKey"
    DEFAULT_LANGUAGE = "en"

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(get_provider_config("currents"), api_key=api_key, **kwargs)

    def fetch_headlines(self, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        data = self._get("/latest-news", {
            "language": self.DEFAULT_LANGUAGE,
            "page_number": page,
            "page_size": min(page_size, MAX_PAGE_SIZE),
        })
        return [self.normalize_article(a) for a in self._news(data)]

    def fetch_by_category(self, category: str, page: int = 1,
                          page_size: int = 20) -> List[Dict[str, Any]]:
        data = self._get("/latest-news", {
            "category": self.map_category(category),
            "language": self.DEFAULT_LANGUAGE,
            "page_number": page,
            "page_size": min(page_size, MAX_PAGE_SIZE),
        }, category=category)
        return [self.normalize_article(a, category=category) for a in self._news(data)]

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        query = self._require_query(query)
        data = self._get("/search", {
            "keywords": query,
            "language": self.DEFAULT_LANGUAGE,
            "page_number": page,
            "page_size": min(page_size, MAX_PAGE_SIZE),
        })
        return [self.normalize_article(a) for a in self._news(data)]

    def _news(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not isinstance(data, dict) or not isinstance(data.get("news"), list):
            raise self._invalid_format()
        return data["news"]

    def normalize_article(self, raw: Dict[str, Any],
                          category: Optional[str] = None) -> Dict[str, Any]:
        if not category:
            raw_category = raw.get("category")
            if isinstance(raw_category, list):
                raw_category = raw_category[0] if raw_category else None
            category = self.normalize_category(raw_category) if raw_category else "general"

        description = raw.get("description") or ""
        return {
            "title": raw.get("title") or "",
            "description": description or raw.get("title") or "",
            # Only the description is available on the free tier
            "content": description,
            "url": raw.get("url") or "",
            "url_to_image": raw.get("image"),
            "published_at": raw.get("published"),
            "source": {"id": self.name, "name": self.display_name},
            "author": raw.get("author") or "Currents",
            "category": category,
            "provider": self.name,
        }
