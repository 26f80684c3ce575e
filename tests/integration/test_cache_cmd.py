"""Integration tests for churn cache (stats, evict, clear)."""

from __future__ import annotations

import time
from pathlib import Path

import pytest

from churn.commands.cache_cmd import run as cache_run
from churn.config import cache_dir
from churn.llm.base import BackendId
from churn.storage.cache import CacheStore

BACKEND = BackendId("ollama", "qwen2.5-coder:7b")


def _seed(root: Path) -> None:
    store = CacheStore(cache_dir(root))
    now = time.time()
    store.put("fresh.py", b"a", [], BACKEND, "2.1.0", "ctx", token_count=40, now=now)
    store.put("stale.py", b"b", [], BACKEND, "2.1.0", "ctx", token_count=60, now=now - 45 * 86400)
    store.save()


def _args(path: Path, **flags):
    values = {"path": path, "stats": False, "clear": False, "evict": False}
    values.update(flags)
    return type("Args", (), values)()


def test_stats_on_empty_project(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cache_run(_args(tmp_path))
    out = capsys.readouterr().out
    assert "Entries:     0" in out
    assert "Oldest:      never" in out


def test_stats_include_stale_entries(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(tmp_path)
    cache_run(_args(tmp_path, stats=True))
    out = capsys.readouterr().out
    assert "Entries:     2" in out
    assert "Tokens:      100" in out
    assert "ollama:qwen2.5-coder:7b: 2" in out


def test_evict_removes_old_entries(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(tmp_path)
    cache_run(_args(tmp_path, evict=True))
    assert "Evicted 1 entries older than 30 days; 1 remain." in capsys.readouterr().out
    assert list(CacheStore.load(cache_dir(tmp_path), evict=False).entries) == ["fresh.py"]


def test_clear_removes_everything(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(tmp_path)
    cache_run(_args(tmp_path, clear=True))
    assert "Cleared 2 cache entries." in capsys.readouterr().out
    assert len(CacheStore.load(cache_dir(tmp_path), evict=False)) == 0


def test_not_a_directory(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cache_run(_args(tmp_path / "missing"))
    assert exc_info.value.code == 1
