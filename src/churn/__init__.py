"""churn: concurrent, cache-aware code improvement analysis over pluggable LLM backends."""

__version__ = "0.3.0"
