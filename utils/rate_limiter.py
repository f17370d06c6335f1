"""
Sliding-window throttle for outgoing news API calls.

Each call to wait() books a send slot that honours the per-minute and
per-second windows plus any failure backoff, then sleeps until that slot
outside the lock. Failure backoff is exponential with jitter and blocks the
endpoint until it expires; blocked_for() lets callers skip instead of wait.
"""
import random
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Deque, Dict

from loguru import logger


class RateLimiter:
    """
    Usage:
        limiter = RateLimiter(requests_per_minute=30, requests_per_second=5)
        limiter.wait("guardian")
        response = requests.get(...)
    """

    def __init__(
        self,
        requests_per_minute: int = 30,
        requests_per_second: int = 5,
        base_backoff: float = 1.0,
        max_backoff: float = 60.0
    ):
        self.rpm = requests_per_minute
        self.rps = requests_per_second
        self.base_backoff = base_backoff
        self.max_backoff = max_backoff

        self._lock = Lock()
        self._sent: Deque[float] = deque()          # monotonic send times
        self._failures: Dict[str, int] = defaultdict(int)
        self._blocked_until: Dict[str, float] = {}

    def _delay(self, endpoint: str, now: float) -> float:
        # Caller holds the lock
        while self._sent and self._sent[0] <= now - 60:
            self._sent.popleft()

        delay = max(0.0, self._blocked_until.get(endpoint, 0.0) - now)
        if len(self._sent) >= self.rpm:
            delay = max(delay, self._sent[-self.rpm] + 60 - now)
        last_second = [t for t in self._sent if t > now - 1]
        if len(last_second) >= self.rps:
            delay = max(delay, last_second[-self.rps] + 1 - now)
        return delay

    def wait(self, endpoint: str = "default") -> float:
        """Block until a request to `endpoint` may be sent. Returns seconds slept."""
        with self._lock:
            now = time.monotonic()
            delay = self._delay(endpoint, now)
            self._sent.append(now + delay)

        if delay > 0:
            if endpoint in self._blocked_until:
                logger.warning(f"{endpoint}: backing off after failure, waiting {delay:.1f}s")
            else:
                logger.debug(f"{endpoint}: throttled, waiting {delay:.2f}s")
            time.sleep(delay)
        return delay

    def record_success(self, endpoint: str = "default") -> None:
        with self._lock:
            self._failures[endpoint] = 0
            self._blocked_until.pop(endpoint, None)

    def record_failure(self, endpoint: str = "default", is_rate_limit: bool = False) -> float:
        """
        Count a failed call and return the suggested backoff in seconds.

        The endpoint is blocked for that long, twice as long after a rate limit.
        """
        with self._lock:
            self._failures[endpoint] += 1
            attempt = self._failures[endpoint]
            backoff = min(self.base_backoff * 2 ** (attempt - 1), self.max_backoff)
            backoff = max(0.5, backoff * random.uniform(0.5, 1.5))

            blocked = backoff * 2 if is_rate_limit else backoff
            self._blocked_until[endpoint] = time.monotonic() + blocked
            if is_rate_limit:
                logger.warning(f"{endpoint}: rate limited, blocking for {blocked:.1f}s")
            else:
                logger.debug(f"{endpoint}: failure #{attempt}, backoff {blocked:.1f}s")
            return backoff

    def blocked_for(self, endpoint: str = "default") -> float:
        """Seconds left on the endpoint's failure backoff, 0 when clear."""
        with self._lock:
            until = self._blocked_until.get(endpoint)
            if until is None:
                return 0.0
            return max(0.0, until - time.monotonic())

    def failure_count(self, endpoint: str = "default") -> int:
        with self._lock:
            return self._failures.get(endpoint, 0)
