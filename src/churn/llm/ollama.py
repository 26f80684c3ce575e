"""Ollama adapter: generate wrapper with context sizing and error classification."""

from __future__ import annotations

from typing import Any, Optional

import httpx
import ollama

from churn.llm.base import Message, StreamCallback, StreamChunk, join_messages, split_system
from churn.llm.context import get_context_size
from churn.llm.errors import BackendError, PermanentBackendError, TransientNetworkError, classify_status

DEFAULT_HOST = "http://localhost:11434"


class OllamaBackend:
    """Local models served by Ollama. Free, so it tolerates high concurrency."""

    provider = "ollama"

    def __init__(
        self,
        host: str | None = None,
        timeout: float = 60.0,
        options: dict[str, Any] | None = None,
        client: Any = None,
    ) -> None:
        self._client = client or ollama.Client(host=host or DEFAULT_HOST, timeout=timeout)
        self._options = dict(options) if options else {}

    def send(
        self,
        model: str,
        messages: list[Message],
        stream_callback: Optional[StreamCallback] = None,
    ) -> str:
        """
        Send messages as one prompt (system message passed separately) and return the text.

        num_ctx is sized from the prompt; an oversized prompt raises ContextOverflowError.
        """
        system, rest = split_system(messages)
        prompt = join_messages(rest)
        opts = dict(self._options)
        opts["num_ctx"] = get_context_size(len(prompt) + len(system or ""))
        try:
            if stream_callback is None:
                response = self._client.generate(
                    model=model, prompt=prompt, system=system, options=opts
                )
                return (response.get("response") or "").strip()
            parts: list[str] = []
            for chunk in self._client.generate(
                model=model, prompt=prompt, system=system, options=opts, stream=True
            ):
                text = chunk.get("response") or ""
                if text:
                    parts.append(text)
                    stream_callback(StreamChunk(content=text, done=False))
            stream_callback(StreamChunk(content="", done=True))
            return "".join(parts).strip()
        except BackendError:
            raise
        except ollama.ResponseError as e:
            if e.status_code == 404:
                raise PermanentBackendError(f"Ollama model not found: {model}", 404) from e
            raise classify_status(e.status_code, f"Ollama error: {e.error}") from e
        except (ConnectionError, TimeoutError, OSError, httpx.TransportError) as e:
            raise TransientNetworkError(f"Ollama unreachable: {e}") from e
