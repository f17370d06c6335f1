from .models import CachedArticle
from .article_store import ArticleStore
from .tiered_cache import TieredArticleCache, CacheLookup, calculate_age

__all__ = ["CachedArticle", "ArticleStore", "TieredArticleCache", "CacheLookup", "calculate_age"]
