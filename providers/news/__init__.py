"""
News provider plugins.

Discovers and registers available news providers based on API keys.
Default order comes from the provider table (priority); NEWS_PROVIDERS
overrides it with a comma-separated list.
"""
from typing import Dict, List, Type

from loguru import logger

from config.providers import get_all_provider_names, get_provider_config
from config.settings import get_settings
from providers.base import BaseNewsProvider
from providers.news.currents import CurrentsProvider
from providers.news.gnews import GNewsProvider
from providers.news.guardian import GuardianProvider
from providers.news.newsapi import NewsAPIProvider
from providers.news.newsdata import NewsDataProvider

# Registry: name -> class
PROVIDER_CLASSES: Dict[str, Type[BaseNewsProvider]] = {
    "newsapi": NewsAPIProvider,
    "guardian": GuardianProvider,
    "gnews": GNewsProvider,
    "newsdata": NewsDataProvider,
    "currents": CurrentsProvider,
}


def get_news_providers() -> List[BaseNewsProvider]:
    """Discover and return available news providers in priority order.

    Only returns providers that have credentials (is_available() == True).
    """
    ordered_names = get_settings().provider_order()
    if not ordered_names:
        ordered_names = sorted(
            get_all_provider_names(),
            key=lambda n: get_provider_config(n).priority,
        )

    providers = []
    for name in ordered_names:
        cls = PROVIDER_CLASSES.get(name)
        if cls is None:
            logger.warning(f"Unknown news provider '{name}', skipping")
            continue
        try:
            provider = cls()
        except Exception as e:
            logger.error(f"Failed to init news provider '{name}': {e}")
            continue

        if provider.is_available():
            providers.append(provider)
            logger.info(
                f"News provider '{name}' registered "
                f"(priority {provider.priority}, quality {provider.quality_weight})"
            )
        else:
            logger.info(f"News provider '{name}' skipped (no credentials)")

    if not providers:
        logger.warning("No news providers available! Check API keys.")

    return providers


__all__ = [
    "PROVIDER_CLASSES",
    "get_news_providers",
    "NewsAPIProvider",
    "GuardianProvider",
    "GNewsProvider",
    "NewsDataProvider",
    "CurrentsProvider",
]
