"""Anthropic adapter built on the official SDK (messages API)."""

from __future__ import annotations

from typing import Any, Optional

import anthropic

from churn.llm.base import Message, StreamCallback, StreamChunk, split_system
from churn.llm.errors import (
    AuthenticationError,
    PermanentBackendError,
    QuotaExceededError,
    RateLimitError,
    TransientNetworkError,
    classify_status,
)

MAX_OUTPUT_TOKENS = 4096


class AnthropicBackend:
    provider = "anthropic"

    def __init__(self, api_key: str | None, timeout: float = 120.0, client: Any = None) -> None:
        if client is None:
            if not api_key:
                raise AuthenticationError("Anthropic API key not found")
            # SDK retries are disabled; the scheduler owns the retry policy
            client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self._client = client

    def send(
        self,
        model: str,
        messages: list[Message],
        stream_callback: Optional[StreamCallback] = None,
    ) -> str:
        system, rest = split_system(messages)
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "messages": [{"role": m.role, "content": m.content} for m in rest],
        }
        if system:
            kwargs["system"] = system
        try:
            if stream_callback is None:
                response = self._client.messages.create(**kwargs)
                return "".join(
                    block.text for block in response.content if getattr(block, "type", "") == "text"
                )
            parts: list[str] = []
            with self._client.messages.stream(**kwargs) as stream:
                for text in stream.text_stream:
                    parts.append(text)
                    stream_callback(StreamChunk(content=text, done=False))
            stream_callback(StreamChunk(content="", done=True))
            return "".join(parts)
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise AuthenticationError(f"Anthropic rejected credentials: {e}", e.status_code) from e
        except anthropic.RateLimitError as e:
            raise RateLimitError(f"Anthropic rate limit: {e}", e.status_code) from e
        except anthropic.APIConnectionError as e:
            # Includes APITimeoutError
            raise TransientNetworkError(f"Anthropic unreachable: {e}") from e
        except anthropic.APIStatusError as e:
            message = f"Anthropic error {e.status_code}: {e.message}"
            if "credit balance" in str(e.message).lower():
                raise QuotaExceededError(message, e.status_code) from e
            if e.status_code == 529:
                raise RateLimitError(message, e.status_code) from e
            raise classify_status(e.status_code, message) from e
        except anthropic.APIResponseValidationError as e:
            raise PermanentBackendError(f"Anthropic response invalid: {e}") from e
