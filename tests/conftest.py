"""Shared fixtures: isolate every test from the real home directory and API keys."""

from __future__ import annotations

from pathlib import Path

import pytest

API_KEY_VARS = ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GOOGLE_API_KEY", "GEMINI_API_KEY")


@pytest.fixture(autouse=True)
def isolated_home(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at an empty directory so ~/.churn/config.json is never the user's."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    for var in API_KEY_VARS:
        monkeypatch.delenv(var, raising=False)
    return home
