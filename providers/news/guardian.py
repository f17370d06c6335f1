"""
The Guardian Open Platform provider plugin.

Free developer key: 500 requests/day (we stop at 400), 12 calls/second.
Everything goes through /search; categories are Guardian sections.
"""
from typing import Any, Dict, List, Optional

from config.providers import get_provider_config
from providers.base import BaseNewsProvider

SHOW_FIELDS = "headline,trailText,bodyText,thumbnail,short-url"


class GuardianProvider(BaseNewsProvider):
    """The Guardian - full article bodies, generous quota."""

    KEY_PARAM = "api-key"

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(get_provider_config("guardian"), api_key=api_key, **kwargs)

    def _params(self, page: int, page_size: int, **extra) -> Dict[str, Any]:
        return {
            "show-fields": SHOW_FIELDS,
            "show-tags": "contributor",
            "page-size": page_size,
            "page": page,
            **extra,
        }

    def fetch_headlines(self, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        data = self._get("/search", self._params(page, page_size, **{"order-by": "newest"}))
        return [self.normalize_article(a) for a in self._results(data)]

    def fetch_by_category(self, category: str, page: int = 1,
                          page_size: int = 20) -> List[Dict[str, Any]]:
        params = self._params(page, page_size, section=self.map_category(category),
                              **{"order-by": "newest"})
        data = self._get("/search", params, category=category)
        return [self.normalize_article(a, category=category) for a in self._results(data)]

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        query = self._require_query(query)
        data = self._get("/search", self._params(page, page_size, q=query,
                                                 **{"order-by": "relevance"}))
        return [self.normalize_article(a) for a in self._results(data)]

    def _results(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        body = data.get("response") if isinstance(data, dict) else None
        if not isinstance(body, dict) or not isinstance(body.get("results"), list):
            raise self._invalid_format()
        return body["results"]

    def normalize_article(self, raw: Dict[str, Any],
                          category: Optional[str] = None) -> Dict[str, Any]:
        fields = raw.get("fields") or {}
        tags = raw.get("tags") or []
        author = tags[0].get("webTitle") if tags and tags[0].get("webTitle") else "The Guardian"

        if not category:
            section = raw.get("sectionId")
            category = self.normalize_category(section) if section else "general"

        return {
            "title": fields.get("headline") or raw.get("webTitle") or "",
            "description": fields.get("trailText") or fields.get("headline") or "",
            "content": fields.get("bodyText") or fields.get("trailText") or "",
            "url": raw.get("webUrl") or "",
            "url_to_image": fields.get("thumbnail"),
            "published_at": raw.get("webPublicationDate"),
            "source": {"id": "the-guardian", "name": "The Guardian"},
            "author": author,
            "category": category,
            "provider": self.name,
        }
