"""
Daily quota, cooldown and health bookkeeping for the news APIs.

Every vendor sells a fixed number of calls per day (NewsAPI 80, GNews 90,
NewsData 150, Guardian 400, Currents 500) and resets the counter at a fixed
UTC hour. The manager keeps one ProviderQuota per vendor and answers a single
question before each call: may this provider be tried right now?

A provider is refused when it is unhealthy (5 consecutive failures, retried
after 300s), cooling down after a 429, or out of calls for the current quota
day. Refusals never consume quota.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from threading import Lock
from typing import Dict, Optional, Tuple

from loguru import logger

from utils.platform import now_utc, quota_day, next_reset_time
from utils.rate_limiter import RateLimiter


@dataclass
class ProviderQuota:
    """Usage window and health of one news provider."""
    name: str
    daily_limit: Optional[int] = None   # None = no daily cap
    reset_hour: int = 0
    rpm: int = 60
    rps: int = 5
    limiter: Optional[RateLimiter] = None

    window: Optional[date] = None
    daily_used: int = 0
    warned: bool = False
    total_requests: int = 0
    total_failures: int = 0
    consecutive_failures: int = 0
    is_healthy: bool = True
    cooldown_seconds: float = 60.0
    cooldown_until: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    last_rate_limit: Optional[datetime] = None

    @property
    def remaining(self) -> Optional[int]:
        if self.daily_limit is None:
            return None
        return max(0, self.daily_limit - self.daily_used)

    @property
    def used_pct(self) -> Optional[float]:
        if not self.daily_limit:
            return None
        return self.daily_used / self.daily_limit * 100

    def in_cooldown(self, now: datetime) -> bool:
        return self.cooldown_until is not None and now < self.cooldown_until

    def roll_window(self, base_cooldown: float) -> None:
        """Start a fresh quota day when the vendor's reset hour has passed."""
        current = quota_day(self.reset_hour)
        if self.window == current:
            return
        if self.window is not None and self.daily_used:
            logger.info(f"{self.name}: new quota day, {self.daily_used} calls used yesterday")
        self.window = current
        self.daily_used = 0
        self.warned = False
        self.cooldown_until = None
        self.cooldown_seconds = base_cooldown

    def start_cooldown(self, max_cooldown: float) -> float:
        """Block the provider for the current cooldown, then double it."""
        seconds = self.cooldown_seconds
        self.cooldown_until = now_utc() + timedelta(seconds=seconds)
        self.cooldown_seconds = min(seconds * 2, max_cooldown)
        return seconds


class APIQuotaManager:
    """Tracks every registered news provider.

    Typical call sequence from the provider manager:

        allowed, reason = quota.wait_and_record("guardian")
        if not allowed:
            ...skip to the next provider, reason goes into the attempt log
        try:
            articles = provider.fetch_headlines()
            quota.record_success("guardian")
        except RateLimitException as e:
            quota.record_rate_limit("guardian", e.retry_after)

    Unregistered names are never limited and record_* calls on them are no-ops.
    """

    UNHEALTHY_THRESHOLD = 5
    UNHEALTHY_COOLDOWN = 300
    QUOTA_ALERT_PCT = 0.80
    BASE_COOLDOWN = 60.0
    MAX_COOLDOWN = 900.0

    def __init__(self):
        self._providers: Dict[str, ProviderQuota] = {}
        self._lock = Lock()

    def _get(self, name: str) -> Optional[ProviderQuota]:
        pq = self._providers.get(name)
        if pq is not None:
            pq.roll_window(self.BASE_COOLDOWN)
        return pq

    def register(self, name: str, daily_limit: Optional[int] = None,
                 rpm: int = 60, rps: Optional[int] = None,
                 reset_hour: int = 0):
        """Add a provider. Registering a known name only updates its limits."""
        with self._lock:
            if name in self._providers:
                pq = self._providers[name]
                pq.daily_limit = daily_limit
                if reset_hour != pq.reset_hour:
                    # Relabel today's window so calls already spent still count
                    pq.reset_hour = reset_hour
                    pq.window = quota_day(reset_hour)
                return

            rps = rps or max(1, rpm // 10)
            self._providers[name] = ProviderQuota(
                name=name,
                daily_limit=daily_limit,
                reset_hour=reset_hour,
                rpm=rpm,
                rps=rps,
                limiter=RateLimiter(requests_per_minute=rpm, requests_per_second=rps,
                                    base_backoff=1.0, max_backoff=30.0),
                window=quota_day(reset_hour),
                cooldown_seconds=self.BASE_COOLDOWN,
            )
        cap = daily_limit if daily_limit is not None else "no cap"
        logger.debug(f"Quota: {name} registered ({cap}/day, {rpm} rpm, {rps} rps, "
                     f"resets {reset_hour:02d}:00 UTC)")

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._providers

    def can_request(self, name: str) -> Tuple[bool, str]:
        """(allowed, reason) for the next call. Consumes nothing."""
        with self._lock:
            pq = self._get(name)
            if pq is None:
                return True, "unregistered"
            now = now_utc()

            if not pq.is_healthy:
                since = (now - (pq.last_failure or now)).total_seconds()
                if since < self.UNHEALTHY_COOLDOWN:
                    return False, f"unhealthy (retry in {self.UNHEALTHY_COOLDOWN - since:.0f}s)"
                pq.is_healthy = True
                pq.consecutive_failures = 0
                if pq.limiter is not None:
                    pq.limiter.record_success(name)
                logger.info(f"Quota: {name} back in rotation after unhealthy period")

            if pq.cooldown_until is not None:
                if pq.in_cooldown(now):
                    left = (pq.cooldown_until - now).total_seconds()
                    return False, f"rate limit cooldown ({left:.0f}s left)"
                pq.cooldown_until = None

            backoff = pq.limiter.blocked_for(name) if pq.limiter is not None else 0.0
            if backoff > 0:
                return False, f"backing off after failure ({backoff:.1f}s left)"

            if pq.remaining == 0:
                return False, f"daily quota exhausted ({pq.daily_used}/{pq.daily_limit})"
            return True, "ok"

    def wait_and_record(self, name: str) -> Tuple[bool, str]:
        """Gate, throttle and count one outgoing request.

        When allowed the RPM/RPS wait has already happened and the call is
        charged against today's quota.
        """
        allowed, reason = self.can_request(name)
        if not allowed:
            return False, reason
        pq = self._providers.get(name)
        if pq is not None and pq.limiter is not None:
            pq.limiter.wait(name)
        self.record_request(name)
        return True, "ok"

    def record_request(self, name: str):
        with self._lock:
            pq = self._get(name)
            if pq is None:
                return
            pq.daily_used += 1
            pq.total_requests += 1
            if (pq.daily_limit and not pq.warned
                    and pq.daily_used >= int(pq.daily_limit * self.QUOTA_ALERT_PCT)):
                pq.warned = True
                logger.warning(f"API QUOTA WARNING: {name} has used {pq.used_pct:.0f}% "
                               f"of its daily calls ({pq.daily_used}/{pq.daily_limit})")

    def record_success(self, name: str):
        with self._lock:
            pq = self._providers.get(name)
            if pq is None:
                return
            pq.consecutive_failures = 0
            pq.last_success = now_utc()
            if pq.limiter is not None:
                pq.limiter.record_success(name)

    def record_failure(self, name: str, is_rate_limit: bool = False):
        """Count a failed call and start the limiter's jittered backoff.

        Enough failures in a row take the provider out of rotation. The 429
        cooldown itself is set by record_rate_limit.
        """
        with self._lock:
            pq = self._providers.get(name)
            if pq is None:
                return
            pq.total_failures += 1
            pq.consecutive_failures += 1
            pq.last_failure = now_utc()
            if pq.limiter is not None:
                pq.limiter.record_failure(name, is_rate_limit=is_rate_limit)
            if pq.is_healthy and pq.consecutive_failures >= self.UNHEALTHY_THRESHOLD:
                pq.is_healthy = False
                logger.warning(f"Quota: {name} marked UNHEALTHY after "
                               f"{pq.consecutive_failures} failures in a row")

    def record_rate_limit(self, name: str, retry_after: Optional[float] = None):
        """Vendor answered 429. Retry-After, when sent, sets the cooldown length."""
        with self._lock:
            pq = self._providers.get(name)
            if pq is None:
                return
            pq.last_rate_limit = now_utc()
            if retry_after:
                pq.cooldown_seconds = min(float(retry_after), self.MAX_COOLDOWN)
            seconds = pq.start_cooldown(self.MAX_COOLDOWN)
        logger.warning(f"Quota: {name} rate limited, cooling down for {seconds:.0f}s")

    def get_rate_limit_status(self, name: str) -> Optional[Dict]:
        """used / limit / remaining / reset_time / percentage, or None."""
        with self._lock:
            pq = self._get(name)
            if pq is None:
                return None
            return {
                "used": pq.daily_used,
                "limit": pq.daily_limit,
                "remaining": pq.remaining,
                "reset_time": next_reset_time(pq.reset_hour).isoformat(),
                "percentage": round(pq.used_pct, 1) if pq.used_pct is not None else 0.0,
            }

    def get_usage(self) -> Dict[str, Dict]:
        with self._lock:
            now = now_utc()
            usage = {}
            for name in self._providers:
                pq = self._get(name)
                usage[name] = {
                    "used": pq.daily_used,
                    "limit": pq.daily_limit,
                    "pct": pq.used_pct,
                    "healthy": pq.is_healthy,
                    "consecutive_failures": pq.consecutive_failures,
                    "total_requests": pq.total_requests,
                    "total_failures": pq.total_failures,
                    "in_cooldown": pq.in_cooldown(now),
                    "reset_hour": pq.reset_hour,
                }
            return usage

    def format_health_report(self) -> str:
        usage = self.get_usage()
        if not usage:
            return ""

        lines = ["=" * 56, "  NEWS API HEALTH (daily quota)", "=" * 56]
        for name in sorted(usage):
            u = usage[name]
            if u["in_cooldown"]:
                state = "COOLDOWN"
            elif not u["healthy"]:
                state = "UNHEALTHY"
            else:
                state = "OK"
            if u["limit"]:
                used = f"{u['used']:>4d}/{u['limit']:<4d} ({u['pct']:.0f}%)"
            else:
                used = f"{u['used']:>4d} calls"
            lines.append(f"  {name:10s} {used:<18s} reset {u['reset_hour']:02d}:00  {state}")
        return "\n".join(lines)


_quota_manager: Optional[APIQuotaManager] = None


def get_quota_manager() -> APIQuotaManager:
    """Process-wide APIQuotaManager."""
    global _quota_manager
    if _quota_manager is None:
        _quota_manager = APIQuotaManager()
    return _quota_manager
