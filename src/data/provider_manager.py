"""
Provider manager - fallback chain across news providers.

Tries providers in priority order for a request type. For each one it
checks the quota manager (daily quota, rate-limit cooldown, health),
waits on the rate limiter, fetches, and validates. The first provider
that yields at least one valid article wins; every failure is recorded
and the chain moves on.

    manager = get_provider_manager()
    result = manager.fetch_by_category_with_fallback("business", page_size=20)
    result.provider, result.articles, result.meta["attempts"]
"""
import time
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from config.providers import get_provider_priority, get_provider_quality
from config.settings import get_settings
from providers.base import Article, BaseNewsProvider
from providers.quota import APIQuotaManager, get_quota_manager
from src.data.validators import validate_articles_batch
from src.utils.logger import audit_log
from utils.error_handler import (
    AllProvidersFailedError,
    QuotaExhaustedException,
    RateLimitException,
    ValidationException,
    categorize_exception,
)
from utils.platform import now_utc

HEALTHY_SUCCESS_RATE = 50.0


@dataclass
class HealthMetrics:
    """Per-provider fetch outcomes since startup."""
    success: int = 0
    failure: int = 0
    total_response_ms: float = 0.0
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def total(self) -> int:
        return self.success + self.failure

    @property
    def avg_response_ms(self) -> int:
        return round(self.total_response_ms / self.success) if self.success else 0

    @property
    def success_rate(self) -> float:
        # No traffic yet counts as healthy
        return self.success / self.total * 100 if self.total else 100.0


@dataclass
class FetchResult:
    """Articles from the first provider that succeeded."""
    success: bool
    provider: str
    quality_weight: int
    articles: List[Article] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)


class ProviderManager:
    """
    Runs requests through the provider fallback chain.

    On init, discovers available providers and registers them with the
    quota manager. Health metrics are tracked here; quota, cooldown and
    consecutive-failure state live in the quota manager.
    """

    def __init__(self, providers: Optional[List[BaseNewsProvider]] = None,
                 quota: Optional[APIQuotaManager] = None):
        if providers is None:
            from providers.news import get_news_providers
            providers = get_news_providers()

        self._providers: Dict[str, BaseNewsProvider] = {p.name: p for p in providers}
        self._quota = quota or get_quota_manager()
        self._health: Dict[str, HealthMetrics] = {}
        self._lock = Lock()

        # Register each provider with the quota manager
        for p in providers:
            self._quota.register(
                name=p.name,
                daily_limit=p.daily_limit,
                rpm=p.requests_per_minute,
                rps=p.requests_per_second,
                reset_hour=p.reset_hour,
            )
            self._health[p.name] = HealthMetrics()

        logger.info(f"Provider manager ready: {len(self._providers)} providers initialized")
        if not self._providers:
            logger.error("No providers available! Configure at least one API key.")

    # ------------------------------------------------------------------
    # Fetch entry points
    # ------------------------------------------------------------------

    def fetch_headlines_with_fallback(self, page: int = 1, page_size: int = 20,
                                      priority_order: Optional[List[str]] = None) -> FetchResult:
        return self.fetch_with_fallback(
            "headlines",
            lambda p: p.fetch_headlines(page=page, page_size=page_size),
            priority_order,
        )

    def fetch_by_category_with_fallback(self, category: str, page: int = 1, page_size: int = 20,
                                        priority_order: Optional[List[str]] = None) -> FetchResult:
        return self.fetch_with_fallback(
            "category",
            lambda p: p.fetch_by_category(category, page=page, page_size=page_size),
            priority_order,
        )

    def search_with_fallback(self, query: str, page: int = 1, page_size: int = 20,
                             priority_order: Optional[List[str]] = None) -> FetchResult:
        if not query or not query.strip():
            raise ValueError("Search query is required")
        return self.fetch_with_fallback(
            "search",
            lambda p: p.search(query, page=page, page_size=page_size),
            priority_order,
        )

    def _default_order(self, request_type: str) -> List[str]:
        """Configured priority for the feature, NEWS_PROVIDERS order first."""
        order = get_provider_priority(request_type)
        override = get_settings().provider_order()
        if override:
            order = [n for n in override if n in order] + [n for n in order if n not in override]
        return order

    def fetch_with_fallback(self, request_type: str,
                            call: Callable[[BaseNewsProvider], List[Dict[str, Any]]],
                            priority_order: Optional[List[str]] = None) -> FetchResult:
        """Try providers in order until one returns valid articles.

        Raises:
            AllProvidersFailedError: every provider failed or was skipped
        """
        order = priority_order or self._default_order(request_type)
        attempts: List[Dict[str, Any]] = []

        logger.debug(f"Attempting {request_type} request: [{' → '.join(order)}]")

        for name in order:
            provider = self._providers.get(name)
            if provider is None:
                logger.debug(f"Skipping {name}: not initialized")
                continue
            if not provider.enabled:
                logger.debug(f"Skipping {name}: disabled")
                continue

            allowed, reason = self._quota.wait_and_record(name)
            if not allowed:
                logger.debug(f"Skipping {name}: {reason}")
                attempts.append({"provider": name, "error": reason, "duration_ms": 0})
                continue

            start = time.monotonic()
            try:
                raw_articles = call(provider)
                duration_ms = round((time.monotonic() - start) * 1000)

                batch = validate_articles_batch(raw_articles, name)
                if batch.valid_count == 0:
                    raise ValidationException(f"All {batch.total} articles failed validation")

            except QuotaExhaustedException as e:
                attempts.append({"provider": name, "error": e.message, "duration_ms": 0})
                logger.warning(f"{provider.display_name} SKIPPED: {e.message}")
                continue

            except Exception as e:
                duration_ms = round((time.monotonic() - start) * 1000)
                message = getattr(e, "message", None) or str(e)

                rate_limited = isinstance(e, RateLimitException)
                if rate_limited:
                    self._quota.record_rate_limit(name, e.retry_after)
                self._quota.record_failure(name, is_rate_limit=rate_limited)
                self.record_failure(name, message)

                logger.warning(
                    f"{provider.display_name} FAILED [{categorize_exception(e).value}]: "
                    f"{message} ({duration_ms}ms)"
                )
                attempts.append({"provider": name, "error": message, "duration_ms": duration_ms})
                continue

            quality = get_provider_quality(name)
            for article in batch.valid:
                article.quality_weight = quality

            self._quota.record_success(name)
            self.record_success(name, duration_ms)
            quota_status = self._quota.get_rate_limit_status(name)

            audit_log(
                f"{name.upper()}_FETCH",
                request=request_type,
                valid=batch.valid_count,
                total=batch.total,
                ms=duration_ms,
            )
            logger.info(
                f"{provider.display_name} SUCCESS: "
                f"{batch.valid_count}/{batch.total} articles valid, {duration_ms}ms, "
                f"{quota_status['remaining'] if quota_status else '?'} requests remaining"
            )
            if batch.warnings:
                logger.debug(f"{provider.display_name} had {len(batch.warnings)} validation warnings")

            return FetchResult(
                success=True,
                provider=name,
                quality_weight=quality,
                articles=batch.valid,
                meta={
                    "total_fetched": batch.total,
                    "valid_count": batch.valid_count,
                    "invalid_count": batch.invalid_count,
                    "duration_ms": duration_ms,
                    "warnings": len(batch.warnings),
                    "attempts": len(attempts) + 1,
                    "quota": quota_status,
                },
            )

        error = AllProvidersFailedError(request_type, attempts)
        logger.error(error.message)
        raise error

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def record_success(self, name: str, duration_ms: float) -> None:
        with self._lock:
            metrics = self._health.setdefault(name, HealthMetrics())
            metrics.success += 1
            metrics.total_response_ms += duration_ms
            metrics.last_success = now_utc()

    def record_failure(self, name: str, error: str) -> None:
        with self._lock:
            metrics = self._health.setdefault(name, HealthMetrics())
            metrics.failure += 1
            metrics.last_failure = now_utc()
            metrics.last_error = error

    def get_health_status(self) -> Dict[str, Dict[str, Any]]:
        """Per-provider health, quota and configuration."""
        status = {}
        with self._lock:
            snapshot = {name: HealthMetrics(**vars(m)) for name, m in self._health.items()}

        for name, provider in self._providers.items():
            metrics = snapshot.get(name, HealthMetrics())
            rate = metrics.success_rate
            status[name] = {
                "display_name": provider.display_name,
                "enabled": provider.enabled,
                "priority": provider.priority,
                "quality_weight": provider.quality_weight,
                "health": {
                    "status": "healthy" if rate >= HEALTHY_SUCCESS_RATE else "degraded",
                    "success_rate": round(rate, 2),
                    "total_requests": metrics.total,
                    "success_count": metrics.success,
                    "failure_count": metrics.failure,
                    "avg_response_ms": metrics.avg_response_ms,
                    "last_success": metrics.last_success.isoformat() if metrics.last_success else None,
                    "last_failure": metrics.last_failure.isoformat() if metrics.last_failure else None,
                    "last_error": metrics.last_error,
                },
                "quota": self._quota.get_rate_limit_status(name),
            }
        return status

    def get_overall_health(self) -> Dict[str, Any]:
        providers = list(self.get_health_status().values())
        healthy = sum(1 for p in providers if p["health"]["status"] == "healthy")
        degraded = sum(1 for p in providers if p["health"]["status"] == "degraded")
        disabled = sum(1 for p in providers if not p["enabled"])

        return {
            "status": "operational" if healthy > 0 else "degraded",
            "total_providers": len(providers),
            "healthy": healthy,
            "degraded": degraded,
            "disabled": disabled,
            "timestamp": now_utc().isoformat(),
        }

    # ------------------------------------------------------------------
    # Registry access
    # ------------------------------------------------------------------

    def get_provider(self, name: str) -> Optional[BaseNewsProvider]:
        return self._providers.get(name)

    def provider_names(self) -> List[str]:
        return list(self._providers.keys())

    def set_provider_enabled(self, name: str, enabled: bool) -> bool:
        provider = self._providers.get(name)
        if provider is None:
            return False
        provider.set_enabled(enabled)
        return True


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_provider_manager: Optional[ProviderManager] = None


def get_provider_manager() -> ProviderManager:
    """Get the global ProviderManager singleton."""
    global _provider_manager
    if _provider_manager is None:
        _provider_manager = ProviderManager()
    return _provider_manager
