"""Context window sizing for Ollama calls."""

from __future__ import annotations

from churn.llm.errors import PermanentBackendError

# Power-of-2 context sizes: minimum 16k, maximum 128k (2**17)
CONTEXT_MIN = 2**14   # 16384
CONTEXT_MAX = 2**17   # 131072

# Chars per token estimate for code-heavy prompts
CHARS_PER_TOKEN = 3

# Response token budget: 2k for smaller prompts, 4k for larger
RESPONSE_TOKENS_SMALL = 2048
RESPONSE_TOKENS_LARGE = 4096
RESPONSE_TOKENS_SMALL_THRESHOLD = 16384


class ContextOverflowError(PermanentBackendError):
    """Raised when estimated prompt + response tokens exceed maximum context (2**17)."""


def get_context_size(prompt_chars: int) -> int:
    """
    Compute the context window size (num_ctx) for a local generate call.

    Uses a conservative ~3 chars/token for code-heavy prompts and reserves
    2k-4k tokens for the response. Returns the smallest power-of-2 context in
    [2**14, 2**15, 2**16, 2**17] that fits.
    """
    estimated_tokens = prompt_chars // CHARS_PER_TOKEN
    response_tokens = (
        RESPONSE_TOKENS_SMALL
        if estimated_tokens < RESPONSE_TOKENS_SMALL_THRESHOLD
        else RESPONSE_TOKENS_LARGE
    )
    total_tokens_needed = estimated_tokens + response_tokens

    size = CONTEXT_MIN
    while size <= CONTEXT_MAX:
        if total_tokens_needed <= size:
            return size
        size *= 2

    raise ContextOverflowError(
        f"Estimated tokens ({total_tokens_needed}) exceeds maximum context ({CONTEXT_MAX})"
    )
