from .validators import validate_article, validate_articles_batch, BatchValidation, ValidationResult
from .provider_manager import ProviderManager, FetchResult, get_provider_manager
from .news_fetcher import NewsFetcher, NewsResponse

__all__ = [
    "validate_article",
    "validate_articles_batch",
    "BatchValidation",
    "ValidationResult",
    "ProviderManager",
    "FetchResult",
    "get_provider_manager",
    "NewsFetcher",
    "NewsResponse",
]
