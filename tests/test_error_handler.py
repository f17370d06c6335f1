"""
Tests for utils/error_handler.py - exception hierarchy and categorize_exception.

Covers: category carried by each exception type, AllProvidersFailedError
message format, string heuristics for third-party exceptions, log_exception.
"""
from unittest.mock import patch

import pytest
import requests

from utils.error_handler import (
    AllProvidersFailedError,
    AuthException,
    ErrorCategory,
    NewsException,
    ProviderException,
    QuotaExhaustedException,
    RateLimitException,
    ValidationException,
    categorize_exception,
    log_exception,
)


class TestExceptionHierarchy:

    def test_news_exception_defaults(self):
        e = NewsException("something broke")
        assert e.message == "something broke"
        assert e.category == ErrorCategory.TRANSIENT
        assert e.timestamp.tzinfo is not None
        assert str(e) == "something broke"

    def test_provider_exception(self):
        e = ProviderException("guardian", "The Guardian request failed: timeout")
        assert e.provider == "guardian"
        assert isinstance(e, NewsException)

    def test_rate_limit_exception(self):
        e = RateLimitException("newsapi", "Rate limit exceeded for NewsAPI", retry_after=60)
        assert e.category == ErrorCategory.RATE_LIMIT
        assert e.retry_after == 60
        assert isinstance(e, ProviderException)

    def test_auth_exception(self):
        assert AuthException("gnews", "Invalid API key for GNews").category == ErrorCategory.AUTH

    def test_quota_exhausted(self):
        e = QuotaExhaustedException("newsapi", "All API keys exhausted for category 'general'")
        assert e.category == ErrorCategory.RATE_LIMIT
        assert e.provider == "newsapi"

    def test_validation_exception(self):
        assert ValidationException("All 3 articles failed validation").category == ErrorCategory.DATA


class TestAllProvidersFailed:

    def test_message_lists_attempts(self):
        attempts = [
            {"provider": "newsapi", "error": "daily quota exhausted (80/80)", "duration_ms": 0},
            {"provider": "guardian", "error": "The Guardian request failed: 503", "duration_ms": 120},
        ]
        e = AllProvidersFailedError("category", attempts)

        assert e.category == ErrorCategory.FATAL
        assert e.request_type == "category"
        assert e.attempts == attempts
        assert e.message == (
            "All providers failed for category request. Attempts: "
            "[newsapi: daily quota exhausted (80/80), guardian: The Guardian request failed: 503]"
        )

    def test_no_attempts(self):
        e = AllProvidersFailedError("search", [])
        assert "no providers available" in e.message


class TestCategorizeException:
    """Test categorize_exception for third-party exceptions."""

    def test_news_exception_uses_own_category(self):
        assert categorize_exception(AuthException("x", "nope")) == ErrorCategory.AUTH

    @pytest.mark.parametrize("message", [
        "429 Client Error", "Rate limit reached", "Too Many Requests", "quota exceeded for today",
    ])
    def test_rate_limit(self, message):
        assert categorize_exception(Exception(message)) == ErrorCategory.RATE_LIMIT

    @pytest.mark.parametrize("message", ["401 Unauthorized", "403 Forbidden", "apiKeyInvalid"])
    def test_auth(self, message):
        assert categorize_exception(Exception(message)) == ErrorCategory.AUTH

    def test_network(self):
        e = requests.exceptions.ConnectionError("Connection aborted")
        assert categorize_exception(e) == ErrorCategory.TRANSIENT
        assert categorize_exception(Exception("Read timed out")) == ErrorCategory.TRANSIENT
        assert categorize_exception(Exception("503 Service Unavailable")) == ErrorCategory.TRANSIENT

    def test_data(self):
        assert categorize_exception(Exception("Invalid response format from X")) == ErrorCategory.DATA

    def test_unknown_is_fatal(self):
        assert categorize_exception(KeyError("weird")) == ErrorCategory.FATAL


class TestLogException:

    def test_logs_category_and_context(self):
        with patch("utils.error_handler.logger") as mock_logger:
            try:
                raise RateLimitException("newsapi", "Rate limit exceeded for NewsAPI")
            except RateLimitException as e:
                log_exception(e, context="headlines fetch")

        message = mock_logger.error.call_args[0][0]
        assert message.startswith("[RATE_LIMIT] headlines fetch:")
        assert mock_logger.debug.called

    def test_without_context(self):
        with patch("utils.error_handler.logger") as mock_logger:
            log_exception(ValueError("bad"))
        assert mock_logger.error.call_args[0][0] == "[FATAL] bad"
