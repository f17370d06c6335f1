"""
Configuration management for the news fetch layer.
"""
from pathlib import Path
from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings

# Get base directory at module level
_BASE_DIR = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    news_api_key: str = Field(default="", alias="NEWS_API_KEY")
    guardian_api_key: str = Field(default="", alias="GUARDIAN_API_KEY")
    gnews_api_key: str = Field(default="", alias="GNEWS_API_KEY")
    newsdata_api_key: str = Field(default="", alias="NEWSDATA_API_KEY")
    currents_api_key: str = Field(default="", alias="CURRENTS_API_KEY")

    # Comma-separated provider order override, e.g. "guardian,newsapi"
    news_providers: str = Field(default="", alias="NEWS_PROVIDERS")

    # Paths - use defaults directly
    base_dir: Path = _BASE_DIR
    data_dir: Path = _BASE_DIR / "data"
    cache_db_path: Path = _BASE_DIR / "data" / "news_cache.duckdb"
    log_dir: Path = _BASE_DIR / "logs"

    # Cache settings
    memory_cache_ttl: int = 900          # 15 minutes in L1
    persistent_cache_days: int = 7       # L2 row expiry
    cache_max_age_hours: float = 2.0     # Normal L2 read freshness
    fallback_max_age_hours: float = 6.0  # L2 freshness when every provider fails
    memory_cache_max_entries: int = 500

    # HTTP
    request_timeout: int = 10

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    production: bool = Field(default=False, alias="PRODUCTION")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def api_key_for(self, provider: str) -> str:
        """Global API key for a provider id ("" when unset)."""
        return {
            "newsapi": self.news_api_key,
            "guardian": self.guardian_api_key,
            "gnews": self.gnews_api_key,
            "newsdata": self.newsdata_api_key,
            "currents": self.currents_api_key,
        }.get(provider, "")

    def provider_order(self) -> list[str]:
        return [p.strip().lower() for p in self.news_providers.split(",") if p.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
