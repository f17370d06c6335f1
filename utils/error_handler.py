"""
Exception types raised by the news providers and the fallback chain.

The provider manager branches on category: RATE_LIMIT puts the provider in
cooldown, AUTH and TRANSIENT count against its health, and
QuotaExhaustedException is skipped without penalty.
"""
import traceback
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from utils.platform import now_utc


class ErrorCategory(Enum):
    TRANSIENT = "TRANSIENT"      # network, timeouts, 5xx
    RATE_LIMIT = "RATE_LIMIT"    # 429 or daily quota
    FATAL = "FATAL"              # unknown, not retried
    DATA = "DATA"                # malformed payload or articles
    AUTH = "AUTH"                # key rejected


class NewsException(Exception):
    """Base exception for the news fetch layer."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.TRANSIENT):
        self.message = message
        self.category = category
        self.timestamp: datetime = now_utc()
        super().__init__(message)


class ProviderException(NewsException):
    """A news provider request failed."""

    def __init__(self, provider: str, message: str,
                 category: ErrorCategory = ErrorCategory.TRANSIENT):
        self.provider = provider
        super().__init__(message, category)


class RateLimitException(ProviderException):
    """Provider answered 429 / rate limit hit."""

    def __init__(self, provider: str, message: str, retry_after: Optional[float] = None):
        super().__init__(provider, message, ErrorCategory.RATE_LIMIT)
        self.retry_after = retry_after


class AuthException(ProviderException):
    """Provider rejected the API key."""

    def __init__(self, provider: str, message: str):
        super().__init__(provider, message, ErrorCategory.AUTH)


class QuotaExhaustedException(ProviderException):
    """Every API key for a provider is out of daily quota."""

    def __init__(self, provider: str, message: str):
        super().__init__(provider, message, ErrorCategory.RATE_LIMIT)


class ValidationException(NewsException):
    """Provider returned data that failed article validation."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.DATA)


class AllProvidersFailedError(NewsException):
    """Every provider in the fallback chain failed or was skipped."""

    def __init__(self, request_type: str, attempts: List[Dict[str, Any]]):
        self.request_type = request_type
        self.attempts = attempts
        failures = ", ".join(
            f"{a['provider']}: {a['error']}" for a in attempts
        ) or "no providers available"
        super().__init__(
            f"All providers failed for {request_type} request. "
            f"Attempts: [{failures}]",
            ErrorCategory.FATAL,
        )


# First match wins, so rate limits are checked before the generic HTTP codes
_MARKERS = [
    (ErrorCategory.RATE_LIMIT, ("429", "rate limit", "too many requests", "throttle", "quota exceeded")),
    (ErrorCategory.AUTH, ("401", "403", "unauthorized", "invalid api key", "apikeyinvalid")),
    (ErrorCategory.TRANSIENT, ("timeout", "timed out", "connectionerror", "connection aborted",
                               "socket", "dns", "500", "502", "503", "504", "service unavailable")),
    (ErrorCategory.DATA, ("invalid response format", "failed validation", "empty response", "not found")),
]


def categorize_exception(e: Exception) -> ErrorCategory:
    """Map any exception to an ErrorCategory.

    NewsException subclasses carry their own category. Anything else
    (requests, json, duckdb) is classified from its message; unknown
    errors are FATAL.
    """
    if isinstance(e, NewsException):
        return e.category

    text = str(e).lower()
    for category, markers in _MARKERS:
        if any(marker in text for marker in markers):
            return category
    return ErrorCategory.FATAL


def log_exception(e: Exception, context: str = ""):
    category = categorize_exception(e)
    prefix = f"[{category.value}] {context}: " if context else f"[{category.value}] "
    logger.error(f"{prefix}{e}")
    logger.debug(f"Traceback:\n{traceback.format_exc()}")
