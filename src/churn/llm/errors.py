"""Backend error taxonomy consumed by the retry policy.

Adapters translate SDK-specific exceptions into these classes so that the
scheduler never needs to know which provider raised.
"""

from __future__ import annotations


class BackendError(Exception):
    """Base class for errors raised by a backend adapter."""

    kind = "backend"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(BackendError):
    """Missing, invalid, or unauthorized credentials. User-actionable; never retried."""

    kind = "auth"


class QuotaExceededError(BackendError):
    """Account quota or billing limit reached. User-actionable; never retried."""

    kind = "quota"


class RateLimitError(BackendError):
    """The backend asked us to slow down (HTTP 429 and equivalents)."""

    kind = "rate_limit"

    def __init__(
        self,
        message: str,
        status_code: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status_code)
        self.retry_after = retry_after


class TransientNetworkError(BackendError):
    """Connection refused/reset, timeouts, and 5xx responses."""

    kind = "network"


class PermanentBackendError(BackendError):
    """Payload too large, context/token limit exceeded, unknown model: retrying cannot help."""

    kind = "permanent"


# Errors that must never be retried
NON_RETRYABLE = (AuthenticationError, QuotaExceededError, PermanentBackendError)

# Substrings that mark a 4xx as a hard size/token violation
_PERMANENT_MARKERS = (
    "too large",
    "too long",
    "max_tokens",
    "maximum context",
    "context length",
    "context_length",
    "token limit",
)


def is_size_violation(message: str) -> bool:
    """True if an error message describes a payload or token-limit violation."""
    lowered = message.lower()
    return any(marker in lowered for marker in _PERMANENT_MARKERS)


def classify_status(status_code: int | None, message: str) -> BackendError:
    """
    Map an HTTP status and message onto the taxonomy. Shared by adapters whose
    SDKs surface plain status codes.
    """
    if status_code in (401, 403):
        return AuthenticationError(message, status_code)
    if status_code == 402:
        return QuotaExceededError(message, status_code)
    if status_code == 429:
        lowered = message.lower()
        if "billing" in lowered or "insufficient_quota" in lowered:
            return QuotaExceededError(message, status_code)
        return RateLimitError(message, status_code)
    if status_code == 413 or is_size_violation(message):
        return PermanentBackendError(message, status_code)
    if status_code is not None and (status_code >= 500 or status_code == 408):
        return TransientNetworkError(message, status_code)
    return PermanentBackendError(message, status_code)
