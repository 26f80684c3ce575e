"""Integration tests for the churn analyze command against the testing_grounds project."""

from __future__ import annotations

import json
import shutil
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from churn.cli import main
from churn.commands.analyze import AUTH_HINT, ProgressPrinter
from churn.commands.analyze import run as analyze_run
from churn.analysis.models import Phase, ProgressSnapshot
from churn.config import reports_dir
from churn.llm.errors import AuthenticationError
from churn.storage.reports import LATEST_REPORT

GROUNDS = Path(__file__).resolve().parents[2] / "testing_grounds"

RESPONSE = json.dumps(
    {
        "suggestions": [
            {
                "category": "refactor",
                "severity": "medium",
                "title": "Extract helper",
                "description": "Logic is duplicated",
                "suggestion": "Move it into a function",
            }
        ]
    }
)


class CountingBackend:
    provider = "anthropic"

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.lock = threading.Lock()
        self.calls = 0

    def send(self, model, messages, stream_callback=None) -> str:
        with self.lock:
            self.calls += 1
        if self.fail_on and self.fail_on in messages[-1].content:
            raise AuthenticationError("invalid x-api-key", 401)
        return RESPONSE


@pytest.fixture
def project(tmp_path: Path) -> Path:
    dest = tmp_path / "grounds"
    shutil.copytree(GROUNDS, dest)
    return dest


def _args(path: Path, **overrides):
    values = {
        "path": path,
        "provider": "anthropic",
        "model": "claude-sonnet-4",
        "staged": False,
        "files": None,
        "include": [],
        "exclude": [],
        "concurrency": 3,
        "no_report": False,
        "json": False,
        "dry_run": False,
        "quiet": True,
        "verbose": False,
    }
    values.update(overrides)
    return type("Args", (), values)()


def test_dry_run_lists_prioritized_files(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    backend = CountingBackend()
    with patch("churn.analysis.pipeline.create_backend", return_value=backend):
        analyze_run(_args(project, dry_run=True))
    out = capsys.readouterr().out
    lines = [line for line in out.splitlines() if "would analyze" in line]
    assert "src/index.ts" in lines[0]
    assert not any("format.test.ts" in line for line in lines)
    assert "8 files would be analyzed with anthropic:claude-sonnet-4, 0 skipped." in out
    assert backend.calls == 0
    assert not reports_dir(project).exists()


def test_analyze_writes_report_and_summary(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    backend = CountingBackend()
    with patch("churn.analysis.pipeline.create_backend", return_value=backend):
        analyze_run(_args(project))
    out = capsys.readouterr().out
    assert backend.calls == 8
    assert "Files analyzed: 8" in out
    assert "Suggestions:    8" in out
    assert "[medium] src/index.ts: Extract helper (refactor)" in out

    report = json.loads((reports_dir(project) / LATEST_REPORT).read_text())
    assert report["analysis"]["summary"]["files_analyzed"] == 8
    assert report["analysis"]["metadata"]["project_type"] == "typescript"
    assert report["analysis"]["metadata"]["framework"] == "React"


def test_second_run_uses_cache(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with patch("churn.analysis.pipeline.create_backend", return_value=CountingBackend()):
        analyze_run(_args(project, no_report=True))
    capsys.readouterr()

    backend = CountingBackend()
    with patch("churn.analysis.pipeline.create_backend", return_value=backend):
        analyze_run(_args(project, no_report=True, json=True))
    data = json.loads(capsys.readouterr().out)
    assert backend.calls == 0
    assert data["summary"]["cache_hits"] == 8
    assert data["summary"]["tokens_used"] == 0
    assert data["summary"]["tokens_saved"] > 0
    assert not reports_dir(project).exists()


def test_files_mode_and_include(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    backend = CountingBackend()
    with patch("churn.analysis.pipeline.create_backend", return_value=backend):
        analyze_run(_args(project, files=["src/index.ts", "scripts/seed.py"], no_report=True))
    assert backend.calls == 2

    backend = CountingBackend()
    with patch("churn.analysis.pipeline.create_backend", return_value=backend):
        analyze_run(_args(project, include=["src/utils/"], no_report=True, dry_run=True))
    assert "1 files would be analyzed" in capsys.readouterr().out


def test_failed_files_print_auth_hint(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    backend = CountingBackend(fail_on="File: src/api/client.ts")
    with patch("churn.analysis.pipeline.create_backend", return_value=backend):
        analyze_run(_args(project, no_report=True))
    captured = capsys.readouterr()
    assert "Files failed:   1" in captured.out
    assert AUTH_HINT in captured.err
    assert "failed: src/api/client.ts (auth)" in captured.err


def test_missing_api_key_exits(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        analyze_run(_args(project))
    assert exc_info.value.code == 1
    err = capsys.readouterr().err
    assert "Error:" in err
    assert AUTH_HINT in err


def test_staged_outside_git_exits(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with patch("churn.analysis.pipeline.create_backend", return_value=CountingBackend()):
        with pytest.raises(SystemExit):
            analyze_run(_args(project, staged=True))
    assert "staged" in capsys.readouterr().err


def test_main_parses_analyze_flags(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    backend = CountingBackend()
    with patch("churn.analysis.pipeline.create_backend", return_value=backend):
        main(["analyze", str(project), "--provider", "anthropic", "-m", "claude-haiku-4-5",
              "--dry-run", "--exclude", "*.json", "-q"])
    assert "6 files would be analyzed with anthropic:claude-haiku-4-5" in capsys.readouterr().out


def test_progress_printer_lines() -> None:
    lines: list[str] = []

    class Sink:
        def write(self, text: str) -> None:
            lines.append(text)

        def flush(self) -> None:
            pass

    printer = ProgressPrinter(Sink())
    printer(ProgressSnapshot(phase=Phase.SCANNING, completed=0, total=0, message="Scanning files"))
    printer(ProgressSnapshot(phase=Phase.ANALYZING, completed=2, total=5, current_file="a.ts",
                             in_flight_count=2, eta=90.0))
    text = "".join(lines)
    assert "scanning: Scanning files" in text
    assert "[2/5] a.ts (2 in flight, eta 1m30s)" in text
