"""
Token estimation and cost accounting.

Pricing is in USD per million tokens (MTok). Each provider table carries a
"default" entry used for models not listed; providers not listed at all are
priced with the Anthropic table. Local Ollama models are free.
"""

from __future__ import annotations

import math
from typing import TypedDict

# Rough estimate used everywhere a token count is not reported by the backend
CHARS_PER_TOKEN = 4

# Suggestions are much shorter than prompts
OUTPUT_TOKEN_RATIO = 0.2


class ModelPricing(TypedDict):
    """Pricing per million tokens (MTok) in USD."""

    input: float
    output: float


MODEL_PRICING: dict[str, dict[str, ModelPricing]] = {
    "anthropic": {
        "claude-opus-4": {"input": 15.0, "output": 75.0},
        "claude-opus-4-1": {"input": 15.0, "output": 75.0},
        "claude-sonnet-4": {"input": 3.0, "output": 15.0},
        "claude-sonnet-4-5": {"input": 3.0, "output": 15.0},
        "claude-haiku-4-5": {"input": 1.0, "output": 5.0},
        "claude-3-5-haiku": {"input": 0.80, "output": 4.0},
        # Sonnet pricing
        "default": {"input": 3.0, "output": 15.0},
    },
    "openai": {
        "gpt-4-turbo": {"input": 10.0, "output": 30.0},
        "gpt-4": {"input": 30.0, "output": 60.0},
        "gpt-4o": {"input": 5.0, "output": 15.0},
        "gpt-4o-mini": {"input": 0.15, "output": 0.60},
        "gpt-3.5-turbo": {"input": 0.5, "output": 1.5},
        # GPT-4o pricing
        "default": {"input": 5.0, "output": 15.0},
    },
    "google": {
        "gemini-1.5-pro": {"input": 1.25, "output": 5.0},
        "gemini-1.5-flash": {"input": 0.35, "output": 1.05},
        "gemini-2.5-pro": {"input": 1.25, "output": 10.0},
        "gemini-2.5-flash": {"input": 0.30, "output": 2.50},
        # Flash pricing
        "default": {"input": 0.35, "output": 1.05},
    },
    "ollama": {
        "default": {"input": 0.0, "output": 0.0},
    },
}

FALLBACK_PROVIDER = "anthropic"


def estimate_tokens(length: int) -> int:
    """Estimated token count for a text of `length` characters."""
    if length <= 0:
        return 0
    return math.ceil(length / CHARS_PER_TOKEN)


def estimate_output_tokens(input_tokens: int) -> int:
    """Output estimate when the backend does not report usage."""
    return math.ceil(input_tokens * OUTPUT_TOKEN_RATIO)


def get_model_pricing(provider: str, model: str) -> ModelPricing:
    """Price entry for provider/model, falling back to the provider default."""
    table = MODEL_PRICING.get(provider) or MODEL_PRICING[FALLBACK_PROVIDER]
    return table.get(model) or table["default"]


def calculate_cost(
    provider: str,
    model: str,
    input_tokens: int,
    output_tokens: int | None = None,
) -> float:
    """
    Cost in USD for a call. If output_tokens is None it is estimated as a
    fixed fraction of input_tokens.
    """
    if output_tokens is None:
        output_tokens = estimate_output_tokens(input_tokens)
    pricing = get_model_pricing(provider, model)
    input_cost = (input_tokens / 1_000_000) * pricing["input"]
    output_cost = (output_tokens / 1_000_000) * pricing["output"]
    return input_cost + output_cost
