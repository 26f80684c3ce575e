"""Backend integration: capability interface, error taxonomy, adapters, pricing."""

from __future__ import annotations

from typing import Any

from churn.config import get_api_key, get_timeout
from churn.llm.base import Backend, BackendId, Message, StreamCallback, StreamChunk
from churn.llm.errors import (
    AuthenticationError,
    BackendError,
    PermanentBackendError,
    QuotaExceededError,
    RateLimitError,
    TransientNetworkError,
)

PROVIDERS = ("ollama", "anthropic", "openai", "google")


def create_backend(provider: str, config: dict[str, Any]) -> Backend:
    """
    Build the adapter for provider from merged configuration (API key, host,
    timeout). Adapters are imported lazily so only the selected SDK loads.
    Raises ValueError for unknown providers and AuthenticationError when a
    remote provider has no API key.
    """
    timeout = get_timeout(config, provider)
    if provider == "ollama":
        from churn.llm.ollama import OllamaBackend

        return OllamaBackend(host=config.get("ollama_host"), timeout=timeout)
    if provider == "anthropic":
        from churn.llm.anthropic import AnthropicBackend

        return AnthropicBackend(api_key=get_api_key(config, provider), timeout=timeout)
    if provider == "openai":
        from churn.llm.openai import OpenAIBackend

        return OpenAIBackend(api_key=get_api_key(config, provider), timeout=timeout)
    if provider == "google":
        from churn.llm.gemini import GeminiBackend

        return GeminiBackend(api_key=get_api_key(config, provider), timeout=timeout)
    raise ValueError(f"Unknown provider {provider!r}; expected one of {', '.join(PROVIDERS)}")


__all__ = [
    "AuthenticationError",
    "Backend",
    "BackendError",
    "BackendId",
    "Message",
    "PROVIDERS",
    "PermanentBackendError",
    "QuotaExceededError",
    "RateLimitError",
    "StreamCallback",
    "StreamChunk",
    "TransientNetworkError",
    "create_backend",
]
