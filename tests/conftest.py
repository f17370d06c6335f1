"""
Shared test fixtures for news fetch layer tests.

Provides StubProvider (no network), fresh quota/cache/store instances,
and helpers to build raw provider payloads and validated articles.
"""
import sys
import os
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# Ensure project root is on path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Patch env BEFORE importing project modules so settings don't pick up a real .env
for _var in ("NEWS_API_KEY", "GUARDIAN_API_KEY", "GNEWS_API_KEY",
             "NEWSDATA_API_KEY", "CURRENTS_API_KEY", "NEWS_PROVIDERS"):
    os.environ[_var] = ""
os.environ["PRODUCTION"] = "false"
os.environ["LOG_LEVEL"] = "DEBUG"

from config.providers import ProviderSpec, PROVIDER_CONFIG
from providers.base import Article, BaseNewsProvider, Source
from providers.cache import ResponseCache
from providers.keys import KeyPool
from providers.quota import APIQuotaManager
from utils.platform import now_utc


# ============================================
# STUB PROVIDER (no network, fully controllable)
# ============================================

class StubProvider(BaseNewsProvider):
    """
    Controllable provider for unit tests.
    Returns queued payloads or raises queued exceptions, counts calls.
    """

    def __init__(self, name: str = "stub", priority: int = 1, quality: int = 80,
                 daily_limit: int = 100, articles: Optional[List[Dict[str, Any]]] = None,
                 error: Optional[Exception] = None):
        spec = ProviderSpec(
            name=name,
            display_name=name.title(),
            base_url=f"https://{name}.example.com",
            priority=priority,
            quality_weight=quality,
            daily_limit=daily_limit,
            requests_per_minute=600,
            requests_per_second=100,
        )
        super().__init__(spec, key_pool=KeyPool(name, daily_limit, global_key=f"{name}-test-key"))
        self.articles = articles if articles is not None else [make_raw(provider=name)]
        self.error = error
        self.calls: List[tuple] = []

    def _respond(self, call: tuple, category: Optional[str] = None) -> List[Dict[str, Any]]:
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        if category:
            return [{**a, "category": category} for a in self.articles]
        return list(self.articles)

    def fetch_headlines(self, page: int = 1, page_size: int = 20):
        return self._respond(("headlines", page, page_size))

    def fetch_by_category(self, category: str, page: int = 1, page_size: int = 20):
        return self._respond(("category", category, page, page_size), category=category)

    def search(self, query: str, page: int = 1, page_size: int = 20):
        return self._respond(("search", query, page, page_size))

    def normalize_article(self, raw, category=None):
        return raw


# ============================================
# HELPERS
# ============================================

def make_raw(title: str = "Test Article", provider: str = "stub", url: Optional[str] = None,
             category: str = "general", published_at: Optional[str] = None,
             **overrides) -> Dict[str, Any]:
    """Raw article dict as an adapter would return it."""
    if url is None:
        url = f"https://example.com/{title.lower().replace(' ', '-')}"
    raw = {
        "title": title,
        "description": f"{title} description",
        "content": f"{title} content body",
        "url": url,
        "url_to_image": "https://example.com/image.jpg",
        "published_at": published_at or "2026-10-16T12:00:00Z",
        "source": {"id": "example", "name": "Example News"},
        "author": "Jane Reporter",
        "category": category,
        "provider": provider,
    }
    raw.update(overrides)
    return raw


def make_article(title: str = "Test Article", provider: str = "stub", url: Optional[str] = None,
                 category: str = "general", published_at: Optional[datetime] = None,
                 quality_weight: int = 80) -> Article:
    """Validated Article for cache/store tests."""
    if url is None:
        url = f"https://example.com/{title.lower().replace(' ', '-')}"
    return Article(
        title=title,
        description=f"{title} description",
        content=f"{title} content body",
        url=url,
        url_to_image="https://example.com/image.jpg",
        published_at=published_at or now_utc() - timedelta(hours=1),
        source=Source(id="example", name="Example News"),
        author="Jane Reporter",
        category=category,
        provider=provider,
        quality_weight=quality_weight,
    )


def mock_response(status_code: int = 200, json_data: Any = None,
                  headers: Optional[Dict[str, str]] = None, json_error: bool = False):
    """requests.Response stand-in."""
    import requests

    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    if json_error:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data if json_data is not None else {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Server Error"
        )
    else:
        response.raise_for_status.return_value = None
    return response


# ============================================
# FIXTURES
# ============================================

@pytest.fixture
def quota():
    """Fresh quota manager for each test."""
    return APIQuotaManager()


@pytest.fixture
def memory_cache():
    """Fresh L1 cache for each test."""
    return ResponseCache(default_ttl_seconds=60, max_entries=100)


@pytest.fixture
def store(tmp_path):
    """ArticleStore on a temp DuckDB file (auto-cleaned)."""
    from src.storage.article_store import ArticleStore
    article_store = ArticleStore(tmp_path / "test_cache.duckdb", expiry_days=7)
    yield article_store
    article_store.close()


@pytest.fixture
def tiered_cache(memory_cache, store):
    from src.storage.tiered_cache import TieredArticleCache
    return TieredArticleCache(memory=memory_cache, store=store,
                              max_age_hours=2, fallback_max_age_hours=6, memory_ttl=60)


@pytest.fixture
def restore_provider_config():
    """Undo runtime enable/disable toggles on the shared provider table."""
    saved = {name: replace(spec) for name, spec in PROVIDER_CONFIG.items()}
    yield PROVIDER_CONFIG
    for name, spec in saved.items():
        PROVIDER_CONFIG[name].enabled = spec.enabled
