"""
Provider error classification.

Maps raw OpenAI / Anthropic SDK exceptions onto the ProviderError taxonomy so
callers get a stable code instead of an opaque failure.

Precedence: timeout → auth → quota → rate limit → catch-all. Within each
category the exception type is checked first, then `status_code`, then the
provider's error `code`, then the message text.
"""

import asyncio
from typing import Optional

import anthropic
import openai

from shared.utils.exceptions import (
    ProviderAuthError,
    ProviderError,
    ProviderQuotaExceededError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)

_TIMEOUT_TYPES = (asyncio.TimeoutError, TimeoutError, openai.APITimeoutError, anthropic.APITimeoutError)
_AUTH_TYPES = (
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    anthropic.AuthenticationError,
    anthropic.PermissionDeniedError,
)
_RATE_LIMIT_TYPES = (openai.RateLimitError, anthropic.RateLimitError)

_AUTH_MARKERS = ("invalid api key", "incorrect api key", "invalid x-api-key", "unauthorized", "authentication")
_QUOTA_CODES = ("insufficient_quota", "billing_hard_limit_reached")
_QUOTA_MARKERS = ("insufficient_quota", "quota", "billing", "credit balance")
_RATE_MARKERS = ("rate limit", "rate_limit", "too many requests")


def _error_code(exc: BaseException) -> Optional[str]:
    code = getattr(exc, "code", None)
    if isinstance(code, str):
        return code
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict):
            for key in ("code", "type"):
                if isinstance(error.get(key), str):
                    return error[key]
    return None


def _retry_after(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    try:
        value = headers.get("retry-after")
    except AttributeError:
        return None
    if not isinstance(value, str):
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def classify_provider_error(exc: BaseException, provider: Optional[str] = None) -> ProviderError:
    """Return the ProviderError subclass instance describing `exc`."""
    if isinstance(exc, ProviderError):
        return exc

    status = getattr(exc, "status_code", None)
    code = (_error_code(exc) or "").lower()
    message = str(exc) or exc.__class__.__name__
    text = message.lower()
    label = provider or "provider"

    if isinstance(exc, _TIMEOUT_TYPES) or status in (408, 504) or "timed out" in text or "timeout" in text:
        return ProviderTimeoutError(f"{label} request timed out", provider=provider, original_error=exc)

    if isinstance(exc, _AUTH_TYPES) or status in (401, 403) or any(m in text for m in _AUTH_MARKERS):
        return ProviderAuthError(
            f"{label} rejected the API key. Check the configured credentials.",
            provider=provider,
            original_error=exc,
        )

    if code in _QUOTA_CODES or status == 402 or any(m in text for m in _QUOTA_MARKERS):
        return ProviderQuotaExceededError(
            f"{label} quota exhausted. Check the account plan and billing.",
            provider=provider,
            original_error=exc,
        )

    if isinstance(exc, _RATE_LIMIT_TYPES) or status == 429 or any(m in text for m in _RATE_MARKERS):
        return ProviderRateLimitError(
            f"{label} rate limit exceeded",
            provider=provider,
            original_error=exc,
            retry_after=_retry_after(exc),
        )

    return ProviderError(f"{label} error: {message}", provider=provider, original_error=exc)
