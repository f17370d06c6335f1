"""
Per-category API key pools.

Free tiers are per key, so a provider can be given several keys, one pair
per category group:

    NEWSAPI_PRIMARY_TECH=...     NEWSAPI_SECONDARY_TECH=...
    NEWSAPI_PRIMARY_FINANCE=...  NEWSAPI_PRIMARY_GENERAL=...

A request for "business" uses the finance keys (primary first), then the
general keys, then the provider's single global key.
"""
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from threading import Lock
from typing import Dict, List, Optional

from loguru import logger

from utils.error_handler import QuotaExhaustedException
from utils.platform import now_utc

CATEGORY_GROUPS: Dict[str, List[str]] = {
    "tech": ["technology", "tech"],
    "finance": ["business", "finance", "markets"],
    "health": ["health", "healthcare", "science"],
    "general": ["general", "world", "entertainment", "sports"],
}

KEY_RESET_WINDOW = timedelta(hours=24)


def mask_key(key: str) -> str:
    return f"{key[:8]}..." if key else ""


@dataclass
class ApiKey:
    """One API key and its usage in the current 24h window."""
    key: str
    tier: str        # primary / secondary / global
    group: str       # tech / finance / health / general / all
    request_count: int = 0
    failures: int = 0
    last_reset: datetime = field(default_factory=now_utc)

    def maybe_reset(self, now: Optional[datetime] = None) -> None:
        now = now or now_utc()
        if now - self.last_reset >= KEY_RESET_WINDOW:
            self.request_count = 0
            self.failures = 0
            self.last_reset = now
            logger.debug(f"Key quota reset: {self.tier}/{self.group}")


class KeyPool:
    """Category-aware API key selection with per-key daily counters."""

    def __init__(self, provider: str, daily_limit: int,
                 global_key: str = "",
                 category_keys: Optional[Dict[str, List[ApiKey]]] = None):
        self.provider = provider
        self.daily_limit = daily_limit
        self._global = ApiKey(global_key, "global", "all") if global_key else None
        self._by_alias: Dict[str, List[ApiKey]] = category_keys or {}
        self._lock = Lock()

    @classmethod
    def from_env(cls, provider: str, daily_limit: int, global_key: str = "") -> "KeyPool":
        """Build a pool from <PROVIDER>_PRIMARY_<GROUP> / _SECONDARY_ env vars."""
        prefix = provider.split(".")[0].upper().replace("-", "").replace(" ", "")
        by_alias: Dict[str, List[ApiKey]] = {}

        for group, aliases in CATEGORY_GROUPS.items():
            keys = []
            for tier in ("primary", "secondary"):
                value = os.getenv(f"{prefix}_{tier.upper()}_{group.upper()}", "")
                if value:
                    keys.append(ApiKey(value, tier, group))
            if keys:
                for alias in aliases:
                    by_alias[alias] = keys

        if by_alias:
            groups = sorted({k.group for keys in by_alias.values() for k in keys})
            logger.debug(f"{provider}: category keys for {', '.join(groups)}")

        return cls(provider, daily_limit, global_key=global_key, category_keys=by_alias)

    @property
    def has_keys(self) -> bool:
        return bool(self._global or self._by_alias)

    def _all_keys(self) -> List[ApiKey]:
        seen: Dict[str, ApiKey] = {}
        for keys in self._by_alias.values():
            for k in keys:
                seen.setdefault(k.key, k)
        if self._global:
            seen.setdefault(self._global.key, self._global)
        return list(seen.values())

    def key_for(self, category: Optional[str] = None) -> str:
        """Pick a key with quota left for the category.

        Raises QuotaExhaustedException when every candidate is used up.
        """
        normalized = (category or "general").lower()

        with self._lock:
            candidates = self._by_alias.get(normalized) or self._by_alias.get("general") or []
            if self._global:
                candidates = [*candidates, self._global]

            if not candidates:
                raise QuotaExhaustedException(self.provider, f"No API key configured for {self.provider}")

            now = now_utc()
            for api_key in candidates:
                api_key.maybe_reset(now)
                if api_key.request_count < self.daily_limit:
                    return api_key.key
                logger.debug(
                    f"{self.provider} {api_key.tier} key for {api_key.group} exhausted "
                    f"({api_key.request_count}/{self.daily_limit})"
                )

        raise QuotaExhaustedException(
            self.provider, f"All API keys exhausted for category '{normalized}'"
        )

    def record_use(self, key: str) -> None:
        with self._lock:
            for api_key in self._all_keys():
                if api_key.key == key:
                    api_key.maybe_reset()
                    api_key.request_count += 1
                    return

    def record_failure(self, key: str) -> None:
        with self._lock:
            for api_key in self._all_keys():
                if api_key.key == key:
                    api_key.failures += 1
                    return

    def summary(self) -> Dict[str, Dict]:
        """Usage per key, keys masked."""
        with self._lock:
            result = {}
            for api_key in self._all_keys():
                used = api_key.request_count
                result[mask_key(api_key.key)] = {
                    "tier": api_key.tier,
                    "group": api_key.group,
                    "used": used,
                    "limit": self.daily_limit,
                    "remaining": max(0, self.daily_limit - used),
                    "percentage": round(used / self.daily_limit * 100) if self.daily_limit else 0,
                    "failures": api_key.failures,
                    "last_reset": api_key.last_reset.isoformat(),
                }
            return result
