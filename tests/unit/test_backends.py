"""Unit tests for backend adapters using fake SDK clients (no network)."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import httpx
import ollama
import openai
import pytest

from churn.config import default_config
from churn.llm import create_backend
from churn.llm.anthropic import AnthropicBackend
from churn.llm.base import Message, StreamChunk
from churn.llm.context import CONTEXT_MIN, ContextOverflowError
from churn.llm.errors import (
    AuthenticationError,
    PermanentBackendError,
    QuotaExceededError,
    RateLimitError,
    TransientNetworkError,
)
from churn.llm.ollama import OllamaBackend
from churn.llm.openai import OpenAIBackend

MESSAGES = [Message("system", "You review code."), Message("user", "Analyze this.")]
REQUEST = httpx.Request("POST", "https://api.example.test/v1")


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=REQUEST)


# --- Ollama ---


def test_ollama_generate_passes_system_and_context_size() -> None:
    client = MagicMock()
    client.generate.return_value = {"response": '  {"suggestions": []}\n'}
    backend = OllamaBackend(client=client, options={"temperature": 0.2})
    assert backend.send("qwen2.5-coder:7b", MESSAGES) == '{"suggestions": []}'
    kwargs = client.generate.call_args.kwargs
    assert kwargs["system"] == "You review code."
    assert kwargs["prompt"] == "user: Analyze this."
    assert kwargs["options"] == {"temperature": 0.2, "num_ctx": CONTEXT_MIN}


def test_ollama_streaming() -> None:
    client = MagicMock()
    client.generate.return_value = iter([{"response": "ab"}, {"response": ""}, {"response": "c"}])
    chunks: list[StreamChunk] = []
    assert OllamaBackend(client=client).send("m", MESSAGES, chunks.append) == "abc"
    assert [c.content for c in chunks] == ["ab", "c", ""]
    assert chunks[-1].done is True


def test_ollama_missing_model_is_permanent() -> None:
    client = MagicMock()
    client.generate.side_effect = ollama.ResponseError("model not found", 404)
    with pytest.raises(PermanentBackendError):
        OllamaBackend(client=client).send("nope", MESSAGES)


def test_ollama_server_error_is_transient() -> None:
    client = MagicMock()
    client.generate.side_effect = ollama.ResponseError("overloaded", 503)
    with pytest.raises(TransientNetworkError):
        OllamaBackend(client=client).send("m", MESSAGES)


def test_ollama_connection_refused_is_transient() -> None:
    client = MagicMock()
    client.generate.side_effect = httpx.ConnectError("refused")
    with pytest.raises(TransientNetworkError):
        OllamaBackend(client=client).send("m", MESSAGES)


def test_ollama_oversized_prompt_overflows_before_calling() -> None:
    client = MagicMock()
    huge = [Message("user", "x" * 400_000)]
    with pytest.raises(ContextOverflowError):
        OllamaBackend(client=client).send("m", huge)
    client.generate.assert_not_called()


# --- Anthropic ---


def test_anthropic_requires_key() -> None:
    with pytest.raises(AuthenticationError):
        AnthropicBackend(api_key=None)


def test_anthropic_joins_text_blocks_and_sends_system() -> None:
    client = MagicMock()
    client.messages.create.return_value = SimpleNamespace(
        content=[SimpleNamespace(type="text", text='{"sugg'), SimpleNamespace(type="text", text='estions": []}')]
    )
    assert AnthropicBackend(api_key=None, client=client).send("claude-sonnet-4", MESSAGES) == '{"suggestions": []}'
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["system"] == "You review code."
    assert kwargs["messages"] == [{"role": "user", "content": "Analyze this."}]


def test_anthropic_rate_limit_maps() -> None:
    client = MagicMock()
    client.messages.create.side_effect = anthropic.RateLimitError("slow down", response=_response(429), body=None)
    with pytest.raises(RateLimitError):
        AnthropicBackend(api_key=None, client=client).send("m", MESSAGES)


def test_anthropic_auth_error_maps() -> None:
    client = MagicMock()
    client.messages.create.side_effect = anthropic.AuthenticationError("bad key", response=_response(401), body=None)
    with pytest.raises(AuthenticationError):
        AnthropicBackend(api_key=None, client=client).send("m", MESSAGES)


def test_anthropic_connection_error_maps() -> None:
    client = MagicMock()
    client.messages.create.side_effect = anthropic.APIConnectionError(request=REQUEST)
    with pytest.raises(TransientNetworkError):
        AnthropicBackend(api_key=None, client=client).send("m", MESSAGES)


# --- OpenAI ---


def test_openai_returns_first_choice() -> None:
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="hello"))]
    )
    assert OpenAIBackend(api_key=None, client=client).send("gpt-4o", MESSAGES) == "hello"
    payload = client.chat.completions.create.call_args.kwargs["messages"]
    assert payload[0] == {"role": "system", "content": "You review code."}


def test_openai_insufficient_quota_is_not_retryable() -> None:
    client = MagicMock()
    client.chat.completions.create.side_effect = openai.RateLimitError(
        "quota", response=_response(429), body={"code": "insufficient_quota"}
    )
    with pytest.raises(QuotaExceededError):
        OpenAIBackend(api_key=None, client=client).send("m", MESSAGES)


def test_openai_throttling_is_rate_limit() -> None:
    client = MagicMock()
    client.chat.completions.create.side_effect = openai.RateLimitError(
        "slow", response=_response(429), body={"code": "rate_limit_exceeded"}
    )
    with pytest.raises(RateLimitError):
        OpenAIBackend(api_key=None, client=client).send("m", MESSAGES)


def test_openai_server_error_is_transient() -> None:
    client = MagicMock()
    client.chat.completions.create.side_effect = openai.InternalServerError(
        "boom", response=_response(500), body=None
    )
    with pytest.raises(TransientNetworkError):
        OpenAIBackend(api_key=None, client=client).send("m", MESSAGES)


# --- Gemini ---


def test_gemini_returns_text() -> None:
    from churn.llm.gemini import GeminiBackend

    client = MagicMock()
    client.models.generate_content.return_value = SimpleNamespace(text="ok")
    assert GeminiBackend(api_key=None, client=client).send("gemini-2.5-flash", MESSAGES) == "ok"
    kwargs = client.models.generate_content.call_args.kwargs
    assert kwargs["contents"] == "user: Analyze this."
    assert kwargs["config"] is not None


def test_gemini_requires_key() -> None:
    from churn.llm.gemini import GeminiBackend

    with pytest.raises(AuthenticationError):
        GeminiBackend(api_key="")


# --- create_backend ---


@pytest.mark.parametrize("provider", ["anthropic", "openai", "google"])
def test_create_backend_without_key_fails_auth(provider: str) -> None:
    with pytest.raises(AuthenticationError):
        create_backend(provider, default_config())


def test_create_backend_uses_config_key() -> None:
    config = default_config()
    config["api_keys"] = {"anthropic": "sk-test"}
    assert isinstance(create_backend("anthropic", config), AnthropicBackend)


def test_create_backend_ollama() -> None:
    backend = create_backend("ollama", default_config())
    assert isinstance(backend, OllamaBackend)
    assert backend.provider == "ollama"


def test_create_backend_unknown_provider() -> None:
    with pytest.raises(ValueError, match="Unknown provider"):
        create_backend("mistral", default_config())
