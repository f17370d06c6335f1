"""
Abstract base class and common article shape for news providers.

Each vendor adapter has a minimal contract: translate the app's query
(headlines / category / search, page, page size) into the vendor's
parameters, and translate the vendor's payload into raw article dicts.
Implement one adapter, register it, and the system handles validation,
rate limiting, caching, quota tracking, and failover automatically.
"""
import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from config.categories import map_to_provider_category, normalize_to_ui_category
from config.providers import ProviderSpec
from config.settings import get_settings
from providers.keys import KeyPool
from utils.error_handler import (
    AuthException,
    ProviderException,
    RateLimitException,
)
from utils.platform import now_utc


@dataclass
class Source:
    id: str
    name: str


@dataclass
class Article:
    """Normalized, validated news article from any provider."""
    title: str
    description: str
    content: str
    url: str
    url_to_image: str
    published_at: datetime
    source: Source
    author: str = "Unknown"
    category: str = "general"
    provider: str = ""  # Which provider returned this
    quality_weight: int = 0
    warnings: List[str] = field(default_factory=list)
    validated_at: datetime = field(default_factory=now_utc)

    @property
    def id(self) -> str:
        return hashlib.md5(self.url.encode()).hexdigest()[:16]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "url": self.url,
            "url_to_image": self.url_to_image,
            "published_at": self.published_at.isoformat(),
            "source": {"id": self.source.id, "name": self.source.name},
            "author": self.author,
            "category": self.category,
            "provider": self.provider,
            "quality_weight": self.quality_weight,
            "warnings": list(self.warnings),
            "validated_at": self.validated_at.isoformat(),
        }


class BaseNewsProvider(ABC):
    """Plugin interface for news APIs.

    Adapters return raw article dicts from fetch_*/search. They should NOT
    validate, rate-limit or cache; the provider manager does that. They
    should raise on HTTP errors (the manager catches and records failure).
    """

    KEY_PARAM = "apiKey"  # Query parameter the vendor expects the key in

    def __init__(self, spec: ProviderSpec, api_key: Optional[str] = None,
                 key_pool: Optional[KeyPool] = None):
        settings = get_settings()
        self.spec = spec
        self.name = spec.name.lower().replace(" ", "")
        self.display_name = spec.display_name
        self.base_url = spec.base_url.rstrip("/")
        self.timeout = settings.request_timeout

        if api_key is None:
            api_key = settings.api_key_for(self.name)
        self.keys = key_pool or KeyPool.from_env(self.name, spec.daily_limit, global_key=api_key)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def priority(self) -> int:
        return self.spec.priority

    @property
    def quality_weight(self) -> int:
        return self.spec.quality_weight

    @property
    def daily_limit(self) -> Optional[int]:
        """Max requests per day. None = unlimited."""
        return self.spec.daily_limit

    @property
    def reset_hour(self) -> int:
        return self.spec.reset_hour

    @property
    def requests_per_minute(self) -> int:
        return self.spec.requests_per_minute

    @property
    def requests_per_second(self) -> int:
        """Max requests per second. Default: a tenth of the RPM."""
        return self.spec.requests_per_second or max(1, self.requests_per_minute // 10)

    @property
    def features(self) -> Dict[str, bool]:
        return self.spec.features

    @property
    def enabled(self) -> bool:
        return self.spec.enabled

    def set_enabled(self, enabled: bool) -> None:
        self.spec.enabled = bool(enabled)
        logger.info(f"Provider {self.display_name} {'enabled' if enabled else 'disabled'}")

    def supports(self, feature: str) -> bool:
        return self.spec.supports(feature)

    def is_available(self) -> bool:
        """True if provider has at least one API key configured."""
        return self.keys.has_keys

    def get_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "enabled": self.enabled,
            "priority": self.priority,
            "quality_weight": self.quality_weight,
            "features": dict(self.features),
            "daily_limit": self.daily_limit,
            "reset_hour": self.reset_hour,
            "keys": self.keys.summary(),
        }

    # ------------------------------------------------------------------
    # Category mapping
    # ------------------------------------------------------------------

    def map_category(self, ui_category: str) -> str:
        return map_to_provider_category(self.name, ui_category)

    def normalize_category(self, provider_category: str) -> str:
        return normalize_to_ui_category(self.name, provider_category)

    # ------------------------------------------------------------------
    # Vendor contract
    # ------------------------------------------------------------------

    @abstractmethod
    def fetch_headlines(self, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        """Top headlines, newest first."""
        ...

    @abstractmethod
    def fetch_by_category(self, category: str, page: int = 1,
                          page_size: int = 20) -> List[Dict[str, Any]]:
        """Headlines for one UI category. Every article carries that category."""
        ...

    @abstractmethod
    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def normalize_article(self, raw: Dict[str, Any],
                          category: Optional[str] = None) -> Dict[str, Any]:
        """Vendor payload item -> raw article dict for the validator."""
        ...

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @staticmethod
    def _require_query(query: str) -> str:
        if not query or not str(query).strip():
            raise ValueError("Search query is required")
        return str(query).strip()

    def _get(self, path: str, params: Dict[str, Any],
             category: Optional[str] = None) -> Dict[str, Any]:
        """GET base_url + path with the right key. Returns the JSON body."""
        api_key = self.keys.key_for(category)
        query = {**params, self.KEY_PARAM: api_key}
        url = f"{self.base_url}{path}"

        try:
            response = requests.get(url, params=query, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ProviderException(self.name, f"{self.display_name} request failed: {e}") from e
        finally:
            self.keys.record_use(api_key)

        if response.status_code == 429:
            self.keys.record_failure(api_key)
            retry_after = response.headers.get("Retry-After")
            raise RateLimitException(
                self.name,
                f"Rate limit exceeded for {self.display_name}",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code in (401, 403):
            self.keys.record_failure(api_key)
            raise AuthException(self.name, f"Invalid API key for {self.display_name}")

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            self.keys.record_failure(api_key)
            raise ProviderException(self.name, f"{self.display_name} request failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise ProviderException(
                self.name, f"Invalid response format from {self.display_name}"
            ) from e

    def _invalid_format(self) -> ProviderException:
        return ProviderException(self.name, f"Invalid response format from {self.display_name}")
