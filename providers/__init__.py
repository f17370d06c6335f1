"""
Provider package - plugin-based news API integrations.

Exposes factory functions for getting singletons:
    from providers import get_quota_manager, get_response_cache
    from providers.news import get_news_providers
"""
from providers.quota import get_quota_manager, APIQuotaManager
from providers.cache import get_response_cache, ResponseCache
from providers.base import Article, Source, BaseNewsProvider

__all__ = [
    "get_quota_manager",
    "get_response_cache",
    "APIQuotaManager",
    "ResponseCache",
    "Article",
    "Source",
    "BaseNewsProvider",
]
