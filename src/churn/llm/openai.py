"""OpenAI adapter built on the official SDK (chat completions)."""

from __future__ import annotations

from typing import Any, Optional

import openai

from churn.llm.base import Message, StreamCallback, StreamChunk
from churn.llm.errors import (
    AuthenticationError,
    QuotaExceededError,
    RateLimitError,
    TransientNetworkError,
    classify_status,
)


class OpenAIBackend:
    provider = "openai"

    def __init__(
        self,
        api_key: str | None,
        timeout: float = 120.0,
        base_url: str | None = None,
        client: Any = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise AuthenticationError("OpenAI API key not found")
            # SDK retries are disabled; the scheduler owns the retry policy
            client = openai.OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
        self._client = client

    def send(
        self,
        model: str,
        messages: list[Message],
        stream_callback: Optional[StreamCallback] = None,
    ) -> str:
        payload = [{"role": m.role, "content": m.content} for m in messages]
        try:
            if stream_callback is None:
                response = self._client.chat.completions.create(model=model, messages=payload)
                if not response.choices:
                    return ""
                return response.choices[0].message.content or ""
            parts: list[str] = []
            stream = self._client.chat.completions.create(model=model, messages=payload, stream=True)
            for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    parts.append(delta)
                    stream_callback(StreamChunk(content=delta, done=False))
            stream_callback(StreamChunk(content="", done=True))
            return "".join(parts)
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise AuthenticationError(f"OpenAI rejected credentials: {e}", e.status_code) from e
        except openai.RateLimitError as e:
            # 429 covers both throttling and an exhausted quota
            if getattr(e, "code", None) == "insufficient_quota":
                raise QuotaExceededError(f"OpenAI quota exceeded: {e}", e.status_code) from e
            raise RateLimitError(f"OpenAI rate limit: {e}", e.status_code) from e
        except openai.APIConnectionError as e:
            raise TransientNetworkError(f"OpenAI unreachable: {e}") from e
        except openai.APIStatusError as e:
            raise classify_status(e.status_code, f"OpenAI error {e.status_code}: {e.message}") from e
