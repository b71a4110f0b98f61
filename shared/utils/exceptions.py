"""
Custom Exception Hierarchy

Exception Hierarchy:
    TutorError (base)
    ├── InvalidInputError
    ├── SessionNotFoundError
    ├── StreamAbortedError
    ├── PromptTemplateError
    └── ProviderError (catch-all for language-model failures)
        ├── ProviderAuthError
        ├── ProviderQuotaExceededError
        ├── ProviderRateLimitError
        └── ProviderTimeoutError

Every error carries a stable `code` so callers can decide whether to retry
(rate limit, timeout) or fail permanently (auth, quota).
"""

from typing import Optional

from fastapi import HTTPException, status


class TutorError(Exception):
    """Base exception for all tutoring errors."""

    code = "tutor_error"
    retryable = False
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.http_status, detail=self.to_dict())


class InvalidInputError(TutorError):
    """Raised when user-supplied text is empty or too long."""

    code = "invalid_input"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid {field}: {reason}", details={"field": field})
        self.field = field
        self.reason = reason


class SessionNotFoundError(TutorError):
    """Raised when a session is missing or belongs to another owner."""

    code = "session_not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class StreamAbortedError(TutorError):
    """Raised when the result of a stream the consumer abandoned is requested.

    Abandoning a stream is a normal way for a turn to end, not a failure.
    """

    code = "stream_aborted"
    http_status = 499

    def __init__(self, session_id: str):
        super().__init__(f"Stream aborted before completion for session {session_id}")
        self.session_id = session_id


# Provider Errors

class ProviderError(TutorError):
    """Language-model provider failure that fits no narrower category."""

    code = "provider_error"
    http_status = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, provider: Optional[str] = None, original_error: Optional[BaseException] = None):
        super().__init__(message, details={"provider": provider} if provider else None)
        self.provider = provider
        self.original_error = original_error


class ProviderAuthError(ProviderError):
    """Raised when the provider rejects the API key."""

    code = "provider_auth"
    http_status = status.HTTP_502_BAD_GATEWAY


class ProviderQuotaExceededError(ProviderError):
    """Raised when the provider account has run out of quota or credits."""

    code = "provider_quota_exceeded"
    http_status = status.HTTP_402_PAYMENT_REQUIRED


class ProviderRateLimitError(ProviderError):
    """Raised when the provider rate limit is exceeded."""

    code = "provider_rate_limited"
    retryable = True
    http_status = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        retry_after: Optional[int] = None,
    ):
        if retry_after:
            message += f". Retry after {retry_after}s"
        super().__init__(message, provider=provider, original_error=original_error)
        self.retry_after = retry_after


class ProviderTimeoutError(ProviderError):
    """Raised when the provider does not answer in time."""

    code = "provider_timeout"
    retryable = True
    http_status = status.HTTP_504_GATEWAY_TIMEOUT


class PromptTemplateError(TutorError):
    """Raised when prompt template rendering fails."""

    code = "prompt_template_error"

    def __init__(self, template_name: str, missing_vars: list[str]):
        message = f"Prompt template '{template_name}' missing variables: {', '.join(missing_vars)}"
        super().__init__(message, details={"template_name": template_name, "missing_vars": missing_vars})
        self.template_name = template_name
        self.missing_vars = missing_vars
