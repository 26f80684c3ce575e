"""Integration tests for churn export (latest report, named reports, formats, listing)."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from churn.analysis.models import (
    AnalysisMetadata,
    AnalysisResult,
    AnalysisSummary,
    Category,
    CodeChange,
    Severity,
    Suggestion,
)
from churn.cli import build_parser
from churn.commands.export import run as export_run
from churn.storage.reports import save_report


def _result(title: str, after: str = "const b = 2;") -> AnalysisResult:
    suggestion = Suggestion(
        "src/a.ts", Category.STYLE, Severity.LOW, title, "mutable binding", "use const",
        code=CodeChange(before="let b = 2;", after=after, start_line=2, end_line=2),
    )
    return AnalysisResult(
        summary=AnalysisSummary(files_analyzed=1, suggestions=1, categories={"style": 1}),
        suggestions=[suggestion],
        metadata=AnalysisMetadata(
            timestamp="2026-01-01T00:00:00+00:00",
            provider="ollama",
            model="qwen2.5-coder:7b",
            mode="full",
            prompt_version="2.1.0",
        ),
    )


def _project(root: Path) -> Path:
    (root / "src").mkdir()
    (root / "src" / "a.ts").write_text("const a = 1;\nlet b = 2;\nexport { a, b };\n")
    base = datetime(2026, 2, 1, tzinfo=timezone.utc)
    save_report(_result("Older"), root, now=base)
    save_report(_result("Newest"), root, now=base + timedelta(hours=1))
    return root


def _args(path: Path, **flags):
    values = {"path": path, "format": "json", "output": None, "report": None, "list": False}
    values.update(flags)
    return type("Args", (), values)()


def test_export_defaults_to_latest_report(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    export_run(_args(_project(tmp_path)))
    data = json.loads(capsys.readouterr().out)
    assert [s["title"] for s in data] == ["Newest"]


def test_export_named_report(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _project(tmp_path)
    export_run(_args(root, report="report-2026-02-01T00-00-00-000000.json"))
    assert [s["title"] for s in json.loads(capsys.readouterr().out)] == ["Older"]


def test_export_markdown_to_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _project(tmp_path)
    out = tmp_path / "out" / "report.md"
    export_run(_args(root, format="markdown", output=out))
    assert f"Exported markdown to {out}" in capsys.readouterr().out
    text = out.read_text()
    assert "## src/a.ts" in text
    assert "### Newest" in text


def test_export_patch_applies_to_working_tree(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    export_run(_args(_project(tmp_path), format="patch"))
    patch = capsys.readouterr().out
    assert patch.startswith("diff --git a/src/a.ts b/src/a.ts\n")
    assert "-let b = 2;\n+const b = 2;\n" in patch


def test_export_list_shows_reports_newest_first(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    export_run(_args(_project(tmp_path), list=True))
    out = capsys.readouterr().out
    assert out.index("report-2026-02-01T01-00-00-000000.json") < out.index("report-2026-02-01T00-00-00-000000.json")
    assert "1 suggestions" in out


def test_export_without_report_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        export_run(_args(tmp_path))
    assert exc_info.value.code == 1
    assert "no report found" in capsys.readouterr().err


def test_export_list_without_reports(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    export_run(_args(tmp_path, list=True))
    assert "No saved reports." in capsys.readouterr().out


def test_parser_accepts_export_flags(tmp_path: Path) -> None:
    args = build_parser().parse_args(["export", str(tmp_path), "--format", "patch", "-o", "x.patch", "--report", "latest.json"])
    assert (args.run, args.format, args.output, args.report) == ("export", "patch", Path("x.patch"), "latest.json")
    with pytest.raises(SystemExit):
        build_parser().parse_args(["export", "--format", "csv"])
