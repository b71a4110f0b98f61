"""Unit tests for shared/services/provider_errors.py: classify_provider_error."""

import asyncio
from unittest.mock import Mock

import anthropic
import openai
import pytest

from shared.services.provider_errors import classify_provider_error
from shared.utils.exceptions import (
    ProviderAuthError,
    ProviderError,
    ProviderQuotaExceededError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)


def _response(status_code, headers=None):
    response = Mock(status_code=status_code)
    response.headers = headers if headers is not None else {}
    return response


class TestOpenAIErrors:
    def test_rate_limit(self):
        exc = openai.RateLimitError("rate limit", response=_response(429), body=None)
        error = classify_provider_error(exc, "openai")
        assert isinstance(error, ProviderRateLimitError)
        assert error.retryable is True
        assert error.original_error is exc

    def test_rate_limit_retry_after(self):
        exc = openai.RateLimitError("rate limit", response=_response(429, {"retry-after": "12"}), body=None)
        error = classify_provider_error(exc, "openai")
        assert error.retry_after == 12
        assert error.message.endswith("Retry after 12s")

    def test_insufficient_quota_beats_rate_limit(self):
        exc = openai.RateLimitError(
            "You exceeded your current quota",
            response=_response(429),
            body={"code": "insufficient_quota", "message": "You exceeded your current quota"},
        )
        assert isinstance(classify_provider_error(exc, "openai"), ProviderQuotaExceededError)

    def test_authentication(self):
        exc = openai.AuthenticationError("bad key", response=_response(401), body=None)
        error = classify_provider_error(exc, "openai")
        assert isinstance(error, ProviderAuthError)
        assert error.retryable is False

    def test_timeout(self):
        exc = openai.APITimeoutError(request=Mock())
        assert isinstance(classify_provider_error(exc, "openai"), ProviderTimeoutError)


class TestAnthropicErrors:
    def test_rate_limit(self):
        exc = anthropic.RateLimitError("rate limit", response=_response(429), body=None)
        assert isinstance(classify_provider_error(exc, "anthropic"), ProviderRateLimitError)

    def test_authentication(self):
        exc = anthropic.AuthenticationError("invalid x-api-key", response=_response(401), body=None)
        assert isinstance(classify_provider_error(exc, "anthropic"), ProviderAuthError)

    def test_credit_balance(self):
        exc = anthropic.BadRequestError(
            "Your credit balance is too low", response=_response(400), body=None
        )
        assert isinstance(classify_provider_error(exc, "anthropic"), ProviderQuotaExceededError)


class TestGenericErrors:
    def test_asyncio_timeout(self):
        assert isinstance(classify_provider_error(asyncio.TimeoutError()), ProviderTimeoutError)

    def test_status_code_attribute(self):
        exc = Exception("upstream said no")
        exc.status_code = 429
        assert isinstance(classify_provider_error(exc), ProviderRateLimitError)

    def test_message_markers(self):
        assert isinstance(classify_provider_error(RuntimeError("Request timed out")), ProviderTimeoutError)
        assert isinstance(classify_provider_error(RuntimeError("Too Many Requests")), ProviderRateLimitError)

    def test_catch_all(self):
        error = classify_provider_error(RuntimeError("connection reset"), "openai")
        assert type(error) is ProviderError
        assert "connection reset" in error.message
        assert error.provider == "openai"

    def test_already_classified_passes_through(self):
        original = ProviderTimeoutError("slow")
        assert classify_provider_error(original) is original
