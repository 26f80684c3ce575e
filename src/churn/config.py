"""Configuration: default paths, constants, and config loading (global + project overrides)."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

# Directory name inside a target project for churn state (cache, reports, config)
CHURN_DIR = ".churn"
CACHE_SUBDIR = "cache"
REPORTS_SUBDIR = "reports"
CONFIG_FILENAME = "config.json"

# Concurrency bounds and per-provider defaults (local backends tolerate more)
MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 50
DEFAULT_CONCURRENCY = 10
PROVIDER_CONCURRENCY = {
    "ollama": 20,
    "openai": 15,
    "anthropic": 15,
    "google": 15,
}

# Per-call timeouts in seconds
LOCAL_PROVIDERS = frozenset({"ollama"})
DEFAULT_LOCAL_TIMEOUT = 60.0
DEFAULT_REMOTE_TIMEOUT = 120.0

API_KEY_ENV_VARS = {
    "anthropic": ("ANTHROPIC_API_KEY",),
    "openai": ("OPENAI_API_KEY",),
    "google": ("GOOGLE_API_KEY", "GEMINI_API_KEY"),
}


def _global_config_dir() -> Path:
    return Path.home() / CHURN_DIR


def global_config_path() -> Path:
    """Path to global config file (~/.churn/config.json)."""
    return _global_config_dir() / CONFIG_FILENAME


def default_config() -> dict[str, Any]:
    """Default configuration."""
    return {
        "default_model": {
            "provider": "ollama",
            "model": "qwen2.5-coder:7b",
        },
        "ollama_host": "http://localhost:11434",
        "api_keys": {},
        "preferences": {
            "concurrency": None,
        },
        "timeouts": {
            "local": DEFAULT_LOCAL_TIMEOUT,
            "remote": DEFAULT_REMOTE_TIMEOUT,
        },
        "differential": {
            "max_changes": 100,
            "min_token_savings": 500,
        },
        "prioritizer": {
            "affinity": {},
        },
        "logging": {
            "level": "INFO",
            "file": None,
        },
        "ignore": {
            "use_gitignore": True,
            "builtin_patterns": [".git/", ".churn/"],
            "additional_patterns": [],
        },
    }


def _load_json(path: Path) -> dict[str, Any] | None:
    """Load JSON from path; return None if file missing or invalid."""
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
    except (json.JSONDecodeError, OSError):
        return None
    return data if isinstance(data, dict) else None


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into base recursively. Mutates base; returns base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_global_config() -> dict[str, Any]:
    """Load global config from ~/.churn/config.json. Returns defaults if missing."""
    data = _load_json(global_config_path())
    if data is None:
        return default_config()
    return _deep_merge(default_config(), data)


def project_config_path(project_root: Path) -> Path:
    """Path to project-local config (<project>/.churn/config.json)."""
    return project_root / CHURN_DIR / CONFIG_FILENAME


def load_config(project_root: Path | None = None) -> dict[str, Any]:
    """
    Load merged configuration: defaults + global (~/.churn/config.json) + project overrides.

    If project_root is None, only global config (and defaults) are used.
    """
    merged = load_global_config()
    if project_root is not None:
        project_data = _load_json(project_config_path(project_root.resolve()))
        if project_data is not None:
            _deep_merge(merged, project_data)
    return merged


def save_config(path: Path, data: dict[str, Any]) -> None:
    """Write a config dict as pretty JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def cache_dir(project_root: Path) -> Path:
    """Directory holding the analysis cache (<project>/.churn/cache)."""
    return project_root / CHURN_DIR / CACHE_SUBDIR


def reports_dir(project_root: Path) -> Path:
    """Directory holding analysis reports (<project>/.churn/reports)."""
    return project_root / CHURN_DIR / REPORTS_SUBDIR


def resolve_path(path: Path) -> Path:
    """Resolve path to absolute, normalized."""
    return path.resolve()


def find_project_root(path: Path) -> Path | None:
    """
    Walk upward from path looking for a directory that contains .churn or .git.
    Returns that directory if found, else None.
    """
    resolved = path.resolve()
    if resolved.is_file():
        resolved = resolved.parent
    current: Path | None = resolved
    while current is not None:
        if (current / CHURN_DIR).is_dir() or (current / ".git").exists():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


def get_project_root(path: Path) -> Path:
    """Project root for path: nearest .churn/.git ancestor, else the directory itself."""
    found = find_project_root(path)
    if found is not None:
        return found
    resolved = path.resolve()
    return resolved.parent if resolved.is_file() else resolved


def get_concurrency(config: dict[str, Any], provider: str | None = None) -> int:
    """
    Concurrency limit for a run: user preference (clamped to 1-50) wins,
    otherwise the provider default, otherwise 10.
    """
    prefs = config.get("preferences") or {}
    user_setting = prefs.get("concurrency")
    if user_setting is not None:
        return clamp_concurrency(int(user_setting))
    if provider:
        return PROVIDER_CONCURRENCY.get(provider, DEFAULT_CONCURRENCY)
    return DEFAULT_CONCURRENCY


def clamp_concurrency(value: int) -> int:
    return max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, value))


def get_timeout(config: dict[str, Any], provider: str) -> float:
    """Per-call timeout in seconds; local backends get the shorter one."""
    timeouts = config.get("timeouts") or {}
    if provider in LOCAL_PROVIDERS:
        return float(timeouts.get("local") or DEFAULT_LOCAL_TIMEOUT)
    return float(timeouts.get("remote") or DEFAULT_REMOTE_TIMEOUT)


def get_api_key(config: dict[str, Any], provider: str) -> str | None:
    """API key for provider: environment variables first, then config api_keys."""
    for var in API_KEY_ENV_VARS.get(provider, ()):
        value = os.environ.get(var)
        if value:
            return value
    keys = config.get("api_keys") or {}
    return keys.get(provider) or None
