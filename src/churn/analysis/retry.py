"""Retry policy for backend calls: exponential backoff on rate limits, short fixed delay on network errors."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from churn.analysis.errors import RetriesExhaustedError
from churn.llm.errors import NON_RETRYABLE, RateLimitError, TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2  # Retries after the first attempt
    base_delay: float = 1.0  # Seconds; rate-limit backoff doubles from here
    max_delay: float = 5.0
    network_delay: float = 0.5

    def rate_limit_delay(self, attempt: int) -> float:
        """Backoff before retry number attempt+1 (attempt is 0-based)."""
        return min(self.base_delay * (2**attempt), self.max_delay)


def call_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "",
) -> T:
    """
    Call fn, retrying per policy.

    Auth, quota and permanent errors propagate at once. Rate limits back off
    exponentially; transient network errors wait network_delay. Any other
    exception propagates on the first attempt, while on a later attempt it
    consumes a retry. Raises RetriesExhaustedError when retries run out.
    """
    policy = policy or RetryPolicy()
    attempts = max(policy.max_retries, 0) + 1
    attempt = 0
    while True:
        try:
            return fn()
        except NON_RETRYABLE:
            raise
        except RateLimitError as e:
            error: Exception = e
            delay = policy.rate_limit_delay(attempt)
        except TransientNetworkError as e:
            error = e
            delay = policy.network_delay
        except Exception as e:
            if attempt == 0:
                raise
            error = e
            delay = policy.network_delay
        attempt += 1
        if attempt >= attempts:
            raise RetriesExhaustedError(attempts, error)
        logger.debug(
            "Retrying %s in %.1fs (attempt %d/%d): %s",
            label or "backend call", delay, attempt + 1, attempts, error,
        )
        sleep(delay)
