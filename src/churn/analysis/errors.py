"""Pipeline-level exceptions."""

from __future__ import annotations


class AnalysisError(Exception):
    """Hard pre-flight failure (e.g. unreadable project root). Stops the run before scheduling."""

    def __init__(self, message: str, kind: str = "error") -> None:
        super().__init__(message)
        self.kind = kind  # "auth" when credentials are missing, else "error"


class RetriesExhaustedError(Exception):
    """Every retry of a retryable backend error failed."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
