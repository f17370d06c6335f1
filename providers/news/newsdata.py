"""
NewsData.io provider plugin.

Free tier: 200 credits/day (we stop at 150). Pages are 0-indexed and the
page size is fixed by the vendor, so results are trimmed locally.
Endpoint: /news
"""
from typing import Any, Dict, List, Optional

from config.providers import get_provider_config
from providers.base import BaseNewsProvider


class NewsDataProvider(BaseNewsProvider):

    KEY_PARAM = "apikey"
    DEFAULT_COUNTRY = "us"
    DEFAULT_LANGUAGE = "en"

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(get_provider_config("newsdata"), api_key=api_key, **kwargs)

    @staticmethod
    def _with_page(params: Dict[str, Any], page: int) -> Dict[str, Any]:
        # First page is requested without a page parameter
        if page > 1:
            params["page"] = page - 1
        return params

    def fetch_headlines(self, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        params = self._with_page({
            "country": self.DEFAULT_COUNTRY,
            "language": self.DEFAULT_LANGUAGE,
        }, page)
        data = self._get("/news", params)
        return [self.normalize_article(a) for a in self._results(data)[:page_size]]

    def fetch_by_category(self, category: str, page: int = 1,
                          page_size: int = 20) -> List[Dict[str, Any]]:
        params = self._with_page({
            "category": self.map_category(category),
            "country": self.DEFAULT_COUNTRY,
            "language": self.DEFAULT_LANGUAGE,
        }, page)
        data = self._get("/news", params, category=category)
        return [self.normalize_article(a, category=category)
                for a in self._results(data)[:page_size]]

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        query = self._require_query(query)
        params = self._with_page({"q": query, "language": self.DEFAULT_LANGUAGE}, page)
        data = self._get("/news", params)
        return [self.normalize_article(a) for a in self._results(data)[:page_size]]

    def _results(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise self._invalid_format()
        return data["results"]

    def normalize_article(self, raw: Dict[str, Any],
                          category: Optional[str] = None) -> Dict[str, Any]:
        if not category:
            raw_category = raw.get("category")
            if isinstance(raw_category, list):
                raw_category = raw_category[0] if raw_category else None
            category = self.normalize_category(raw_category) if raw_category else "general"

        creators = raw.get("creator") or []
        source_id = raw.get("source_id")
        return {
            "title": raw.get("title") or "",
            "description": raw.get("description") or raw.get("title") or "",
            "content": raw.get("content") or raw.get("description") or "",
            "url": raw.get("link") or "",
            "url_to_image": raw.get("image_url"),
            "published_at": raw.get("pubDate"),
            "source": {
                "id": source_id or self.name,
                "name": source_id or self.display_name,
            },
            "author": creators[0] if creators else "NewsData",
            "category": category,
            "provider": self.name,
        }
