"""
Pydantic models for cached article rows.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from providers.base import Article, Source
from utils.platform import ensure_utc


class CachedArticle(BaseModel):
    """One row of the persistent article cache."""
    url: str
    title: str
    description: str = ""
    content: str = ""
    url_to_image: Optional[str] = None
    published_at: datetime
    source_id: Optional[str] = None
    source_name: Optional[str] = None
    author: str = "Unknown"
    category: str = "general"
    provider: str
    quality_weight: int = Field(default=50, ge=0, le=100)
    fetched_at: datetime
    last_accessed_at: datetime
    access_count: int = Field(default=0, ge=0)
    cache_expiry: datetime

    @field_validator("published_at", "fetched_at", "last_accessed_at", "cache_expiry")
    @classmethod
    def as_utc(cls, v):
        # DuckDB TIMESTAMP columns come back naive; they hold UTC
        return ensure_utc(v)

    def to_article(self) -> Article:
        return Article(
            title=self.title,
            description=self.description,
            content=self.content,
            url=self.url,
            url_to_image=self.url_to_image or "",
            published_at=self.published_at,
            source=Source(id=self.source_id or self.provider, name=self.source_name or self.provider),
            author=self.author,
            category=self.category,
            provider=self.provider,
            quality_weight=self.quality_weight,
        )
