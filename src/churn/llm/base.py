"""Backend capability interface: one uniform send() per provider adapter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal, Optional, Protocol, runtime_checkable

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Message:
    """One chat message sent to a backend."""

    role: Role
    content: str


@dataclass(frozen=True)
class StreamChunk:
    """Incremental text from a streaming call; done=True marks the end."""

    content: str
    done: bool = False


StreamCallback = Callable[[StreamChunk], None]


@dataclass(frozen=True)
class BackendId:
    """Identity of a backend for cache keys and pricing (provider + model)."""

    provider: str
    model: str

    def __str__(self) -> str:
        return f"{self.provider}:{self.model}"


@runtime_checkable
class Backend(Protocol):
    """
    A text-generation backend. Implementations raise subclasses of
    churn.llm.errors.BackendError so the retry policy can classify failures.
    send() is called concurrently from worker threads.
    """

    provider: str

    def send(
        self,
        model: str,
        messages: list[Message],
        stream_callback: Optional[StreamCallback] = None,
    ) -> str:
        """Send messages and return the full response text."""
        ...


def join_messages(messages: list[Message]) -> str:
    """Flatten messages into one prompt for completion-style backends."""
    return "\n\n".join(f"{m.role}: {m.content}" for m in messages)


def split_system(messages: list[Message]) -> tuple[str | None, list[Message]]:
    """Separate the first system message from the conversation."""
    system: str | None = None
    rest: list[Message] = []
    for m in messages:
        if m.role == "system" and system is None:
            system = m.content
        else:
            rest.append(m)
    return system, rest


def prompt_length(messages: list[Message]) -> int:
    """Total characters across all message contents."""
    return sum(len(m.content) for m in messages)
