"""
Provider Configuration - Single source of truth for news API vendors.

Priority, quality weight, daily quota and rate limits for every provider,
read from .env with defaults. Lower priority number = tried first.

Usage:
    from config.providers import get_provider_priority
    get_provider_priority("search")  # ['newsapi', 'guardian', 'gnews', 'currents']
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from loguru import logger

# Load .env
load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_QUALITY_WEIGHT = 50
FEATURES = ("headlines", "category", "search")


def _env_int(key: str, default: int) -> int:
    """Get int env var."""
    return int(os.getenv(key, str(default)))


def _env_bool(key: str, default: bool) -> bool:
    """Get bool env var (case-insensitive)."""
    val = os.getenv(key, str(default)).strip().lower()
    return val in ("true", "1", "yes", "on")


@dataclass
class ProviderSpec:
    """Static description of one news API."""
    name: str
    display_name: str
    base_url: str
    priority: int
    quality_weight: int
    daily_limit: int
    reset_hour: int = 0  # UTC
    requests_per_minute: int = 60
    requests_per_second: Optional[int] = None
    features: Dict[str, bool] = field(default_factory=lambda: {f: True for f in FEATURES})
    enabled: bool = True

    def supports(self, feature: str) -> bool:
        return self.features.get(feature, False)


def _spec(name: str, display_name: str, base_url: str, priority: int,
          quality: int, daily: int, **kwargs) -> ProviderSpec:
    prefix = name.upper()
    return ProviderSpec(
        name=name,
        display_name=display_name,
        base_url=base_url,
        priority=_env_int(f"{prefix}_PRIORITY", priority),
        quality_weight=quality,
        daily_limit=_env_int(f"{prefix}_DAILY_LIMIT", daily),
        enabled=_env_bool(f"{prefix}_ENABLED", True),
        **kwargs,
    )


# ============================================
# PROVIDER TABLE
# ============================================

# Daily limits stay below the vendors' free tiers to leave a safety margin.
PROVIDER_CONFIG: Dict[str, ProviderSpec] = {
    "newsapi": _spec(
        "newsapi", "NewsAPI", "https://newsapi.org/v2",
        priority=1, quality=100, daily=80,
    ),
    "guardian": _spec(
        "guardian", "The Guardian", "https://content.guardianapis.com",
        priority=2, quality=95, daily=400, requests_per_second=10,
    ),
    "gnews": _spec(
        "gnews", "GNews", "https://gnews.io/api/v4",
        priority=3, quality=75, daily=90,
    ),
    "newsdata": _spec(
        "newsdata", "NewsData.io", "https://newsdata.io/api/1",
        priority=4, quality=70, daily=150,
        features={"headlines": True, "category": True, "search": False},
    ),
    "currents": _spec(
        "currents", "Currents", "https://api.currentsapi.services/v1",
        priority=5, quality=80, daily=500,
    ),
}


# ============================================
# LOOKUPS
# ============================================

def get_provider_config(name: str) -> Optional[ProviderSpec]:
    return PROVIDER_CONFIG.get(name)


def get_enabled_providers() -> List[ProviderSpec]:
    """Enabled providers sorted by priority."""
    return sorted(
        (spec for spec in PROVIDER_CONFIG.values() if spec.enabled),
        key=lambda spec: spec.priority,
    )


def get_provider_priority(feature: str = "headlines") -> List[str]:
    """Provider ids to try for a feature, best first."""
    return [spec.name for spec in get_enabled_providers() if spec.supports(feature)]


def get_provider_quality(name: str) -> int:
    spec = PROVIDER_CONFIG.get(name)
    return spec.quality_weight if spec else DEFAULT_QUALITY_WEIGHT


def get_provider_rate_limit(name: str) -> Optional[dict]:
    spec = PROVIDER_CONFIG.get(name)
    if not spec:
        return None
    return {
        "daily": spec.daily_limit,
        "per_minute": spec.requests_per_minute,
        "per_second": spec.requests_per_second,
        "reset_hour": spec.reset_hour,
    }


def is_provider_enabled(name: str) -> bool:
    spec = PROVIDER_CONFIG.get(name)
    return bool(spec and spec.enabled)


def get_all_provider_names() -> List[str]:
    return list(PROVIDER_CONFIG.keys())


def get_provider_base_url(name: str) -> Optional[str]:
    spec = PROVIDER_CONFIG.get(name)
    return spec.base_url if spec else None


def get_provider_features(name: str) -> Dict[str, bool]:
    spec = PROVIDER_CONFIG.get(name)
    return dict(spec.features) if spec else {}


def set_provider_enabled(name: str, enabled: bool) -> bool:
    """Toggle a provider at runtime. False for unknown ids."""
    spec = PROVIDER_CONFIG.get(name)
    if not spec:
        logger.warning(f"Unknown provider: {name}")
        return False
    spec.enabled = enabled
    logger.info(f"Provider {name} {'enabled' if enabled else 'disabled'}")
    return True
