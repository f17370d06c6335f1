"""
Category mapping between the app's UI categories and each provider's own
section/category vocabulary.

Forward maps translate a UI category into a provider query parameter;
reverse maps translate whatever a provider stamps on an article back to a
UI category. Unknown values land on "general".
"""
from typing import Dict, List

from loguru import logger

UI_CATEGORIES = [
    "general",
    "business",
    "technology",
    "sports",
    "health",
    "science",
    "entertainment",
    "politics",
    "world",
]

# UI category -> provider category
CATEGORY_MAP: Dict[str, Dict[str, str]] = {
    # NewsAPI has no politics/world, both go to general
    "newsapi": {
        "general": "general",
        "business": "business",
        "technology": "technology",
        "sports": "sports",
        "health": "health",
        "science": "science",
        "entertainment": "entertainment",
        "politics": "general",
        "world": "general",
    },
    # Guardian uses section ids
    "guardian": {
        "general": "world",
        "business": "business",
        "technology": "technology",
        "sports": "sport",
        "health": "society",
        "science": "science",
        "entertainment": "culture",
        "politics": "politics",
        "world": "world",
    },
    "gnews": {
        "general": "general",
        "business": "business",
        "technology": "technology",
        "sports": "sports",
        "health": "health",
        "science": "science",
        "entertainment": "entertainment",
        "politics": "nation",
        "world": "world",
    },
    "newsdata": {
        "general": "top",
        "business": "business",
        "technology": "technology",
        "sports": "sports",
        "health": "health",
        "science": "science",
        "entertainment": "entertainment",
        "politics": "politics",
        "world": "world",
    },
    "currents": {c: c for c in UI_CATEGORIES},
}

# Provider category -> UI category
REVERSE_CATEGORY_MAP: Dict[str, Dict[str, str]] = {
    "newsapi": {
        "general": "general",
        "business": "business",
        "technology": "technology",
        "sports": "sports",
        "health": "health",
        "science": "science",
        "entertainment": "entertainment",
    },
    "guardian": {
        "world": "world",
        "business": "business",
        "technology": "technology",
        "sport": "sports",
        "society": "health",
        "science": "science",
        "culture": "entertainment",
        "politics": "politics",
        "environment": "science",
        "education": "general",
        "media": "entertainment",
        "law": "politics",
    },
    "gnews": {
        "general": "general",
        "business": "business",
        "technology": "technology",
        "sports": "sports",
        "health": "health",
        "science": "science",
        "entertainment": "entertainment",
        "nation": "politics",
        "world": "world",
    },
    "newsdata": {
        "top": "general",
        "business": "business",
        "technology": "technology",
        "sports": "sports",
        "health": "health",
        "science": "science",
        "entertainment": "entertainment",
        "politics": "politics",
        "world": "world",
    },
    "currents": {
        **{c: c for c in UI_CATEGORIES},
        "regional": "general",
        "lifestyle": "entertainment",
        "programming": "technology",
        "finance": "business",
        "academia": "science",
        "opinion": "general",
        "food": "entertainment",
        "game": "entertainment",
    },
}


def map_to_provider_category(provider: str, ui_category: str) -> str:
    """UI category -> provider query value."""
    mapping = CATEGORY_MAP.get(provider)
    if mapping is None:
        logger.warning(f"No category mapping for provider: {provider}")
        return ui_category

    normalized = (ui_category or "").lower()
    mapped = mapping.get(normalized)
    if mapped is None:
        logger.warning(f"Unknown category '{ui_category}' for {provider}, using general")
        return mapping.get("general", "general")
    return mapped


def normalize_to_ui_category(provider: str, provider_category: str) -> str:
    """Provider article category -> UI category."""
    reverse = REVERSE_CATEGORY_MAP.get(provider)
    if reverse is None:
        logger.warning(f"No reverse category mapping for provider: {provider}")
        return "general"

    return reverse.get((provider_category or "").lower(), "general")


def get_provider_categories(provider: str) -> List[str]:
    return sorted(set(CATEGORY_MAP.get(provider, {}).values()))


def is_valid_category_for_provider(provider: str, category: str) -> bool:
    return (category or "").lower() in CATEGORY_MAP.get(provider, {})


def get_ui_categories() -> List[str]:
    return list(UI_CATEGORIES)
