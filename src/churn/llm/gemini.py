"""Google Gemini adapter built on the google-genai SDK."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from churn.llm.base import Message, StreamCallback, StreamChunk, join_messages, split_system
from churn.llm.errors import AuthenticationError, BackendError, TransientNetworkError, classify_status


class GeminiBackend:
    provider = "google"

    def __init__(self, api_key: str | None, timeout: float = 120.0, client: Any = None) -> None:
        if client is None:
            if not api_key:
                raise AuthenticationError("Google API key not found")
            client = genai.Client(
                api_key=api_key,
                # HttpOptions.timeout is in milliseconds
                http_options=genai_types.HttpOptions(timeout=int(timeout * 1000)),
            )
        self._client = client

    def send(
        self,
        model: str,
        messages: list[Message],
        stream_callback: Optional[StreamCallback] = None,
    ) -> str:
        system, rest = split_system(messages)
        config = genai_types.GenerateContentConfig(system_instruction=system) if system else None
        contents = join_messages(rest)
        try:
            if stream_callback is None:
                response = self._client.models.generate_content(
                    model=model, contents=contents, config=config
                )
                return response.text or ""
            parts: list[str] = []
            for chunk in self._client.models.generate_content_stream(
                model=model, contents=contents, config=config
            ):
                text = chunk.text or ""
                if text:
                    parts.append(text)
                    stream_callback(StreamChunk(content=text, done=False))
            stream_callback(StreamChunk(content="", done=True))
            return "".join(parts)
        except BackendError:
            raise
        except genai_errors.APIError as e:
            message = f"Gemini error {e.code}: {e.message}"
            if e.code == 400 and "api key" in str(e.message).lower():
                raise AuthenticationError(message, e.code) from e
            raise classify_status(e.code, message) from e
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Gemini unreachable: {e}") from e
