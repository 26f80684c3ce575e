"""Unit tests for report writing, retention and export."""

from __future__ import annotations

import json
import os
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from churn.analysis.differential import parse_diff
from churn.analysis.models import (
    AnalysisMetadata,
    AnalysisResult,
    AnalysisSummary,
    Category,
    CodeChange,
    Severity,
    Suggestion,
)
from churn.config import reports_dir
from churn.storage.reports import (
    LATEST_REPORT,
    REPORT_VERSION,
    build_patch,
    export_markdown,
    export_suggestions,
    list_reports,
    load_last_report,
    prune_reports,
    read_report,
    report_suggestions,
    save_report,
)


def _result() -> AnalysisResult:
    return AnalysisResult(
        summary=AnalysisSummary(files_analyzed=1, suggestions=1, categories={"bug": 1}),
        suggestions=[
            Suggestion("src/a.ts", Category.BUG, Severity.HIGH, "Off by one", "loop bound", "use <")
        ],
        metadata=AnalysisMetadata(
            timestamp="2026-01-01T00:00:00+00:00",
            provider="anthropic",
            model="claude-sonnet-4",
            mode="full",
            prompt_version="2.1.0",
        ),
    )


def test_save_report_writes_timestamped_and_latest(tmp_path: Path) -> None:
    now = datetime(2026, 3, 4, 5, 6, 7, 890, tzinfo=timezone.utc)
    path = save_report(_result(), tmp_path, now=now)
    assert path.name == "report-2026-03-04T05-06-07-000890.json"
    data = json.loads(path.read_text())
    assert data["version"] == REPORT_VERSION
    assert data["repository"]["name"] == tmp_path.resolve().name
    assert data["analysis"]["summary"]["files_analyzed"] == 1
    assert data["analysis"]["suggestions"][0]["title"] == "Off by one"
    assert (reports_dir(tmp_path) / LATEST_REPORT).read_text() == path.read_text()


def test_load_last_report(tmp_path: Path) -> None:
    assert load_last_report(tmp_path) is None
    save_report(_result(), tmp_path)
    report = load_last_report(tmp_path)
    assert report is not None
    assert report["analysis"]["metadata"]["provider"] == "anthropic"


def test_load_last_report_corrupt(tmp_path: Path) -> None:
    directory = reports_dir(tmp_path)
    directory.mkdir(parents=True)
    (directory / LATEST_REPORT).write_text("{oops")
    assert load_last_report(tmp_path) is None


def test_prune_keeps_newest_by_count(tmp_path: Path) -> None:
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for i in range(5):
        save_report(_result(), tmp_path, now=base + timedelta(minutes=i))
    directory = reports_dir(tmp_path)
    assert prune_reports(directory, max_count=2) == 3
    assert [p.name for p in list_reports(tmp_path)] == [
        "report-2026-01-01T00-04-00-000000.json",
        "report-2026-01-01T00-03-00-000000.json",
    ]


def test_prune_removes_old_reports(tmp_path: Path) -> None:
    path = save_report(_result(), tmp_path)
    old = time.time() - 40 * 86400
    os.utime(path, (old, old))
    assert prune_reports(path.parent) == 1
    assert list_reports(tmp_path) == []
    assert (path.parent / LATEST_REPORT).exists()


def test_read_report_by_path(tmp_path: Path) -> None:
    path = save_report(_result(), tmp_path)
    assert read_report(path) == load_last_report(tmp_path)
    assert read_report(tmp_path / "missing.json") is None


# --- export ---


def _change(file: str, start: int, end: int, before: str, after: str, title: str = "Fix") -> Suggestion:
    return Suggestion(
        file, Category.BUG, Severity.MEDIUM, title, "why", "how",
        code=CodeChange(before=before, after=after, start_line=start, end_line=end),
    )


def test_report_suggestions_skip_malformed_items(tmp_path: Path) -> None:
    save_report(_result(), tmp_path)
    report = load_last_report(tmp_path)
    report["analysis"]["suggestions"] += [None, {"file": "x"}]
    assert [s.title for s in report_suggestions(report)] == ["Off by one"]


def test_report_suggestions_require_analysis() -> None:
    with pytest.raises(ValueError):
        report_suggestions({"version": REPORT_VERSION})


def test_export_json_lists_suggestions(tmp_path: Path) -> None:
    save_report(_result(), tmp_path)
    data = json.loads(export_suggestions(load_last_report(tmp_path), "json", tmp_path))
    assert data == [
        {
            "file": "src/a.ts",
            "category": "bug",
            "severity": "high",
            "title": "Off by one",
            "description": "loop bound",
            "recommendation": "use <",
        }
    ]


def test_export_markdown_groups_by_file() -> None:
    suggestions = [
        _change("src/a.ts", 2, 2, "let i = 0", "const i = 0", title="Use const"),
        Suggestion("src/a.ts", Category.STYLE, Severity.LOW, "Rename", "unclear", "rename it"),
        Suggestion("src/b.ts", Category.BUG, Severity.HIGH, "Null check", "may be null", "guard it"),
    ]
    md = export_markdown(suggestions, generated_at="2026-01-01T00:00:00+00:00")
    assert md.startswith("# Churn Analysis Report\n")
    assert "Generated: 2026-01-01T00:00:00+00:00" in md
    assert "Total suggestions: 3" in md
    assert md.count("## src/a.ts") == 1
    assert md.index("### Use const") < md.index("### Rename") < md.index("## src/b.ts")
    assert "**Before** (lines 2-2):\n```\nlet i = 0\n```" in md
    assert "**After**:\n```\nconst i = 0\n```" in md
    assert "**Severity**: high" in md


def test_export_rejects_unknown_format(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        export_suggestions({"analysis": {"suggestions": []}}, "csv", tmp_path)


def test_build_patch_replaces_anchored_lines(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.ts").write_text("one\nlet two = 2;\nthree\nfour\n")
    patch = build_patch([_change("src/a.ts", 2, 2, "let two = 2;", "const two = 2;")], tmp_path)
    assert patch == (
        "diff --git a/src/a.ts b/src/a.ts\n"
        "--- a/src/a.ts\n"
        "+++ b/src/a.ts\n"
        "@@ -1,4 +1,4 @@\n"
        " one\n"
        "-let two = 2;\n"
        "+const two = 2;\n"
        " three\n"
        " four\n"
    )


def test_build_patch_is_parseable_and_counts_changes(tmp_path: Path) -> None:
    lines = [f"line {i}" for i in range(1, 31)]
    (tmp_path / "big.py").write_text("\n".join(lines) + "\n")
    suggestions = [
        _change("big.py", 3, 4, "line 3\nline 4", "merged 3-4"),
        _change("big.py", 20, 20, "line 20", "line twenty\nline twenty-b"),
    ]
    diff = parse_diff(build_patch(suggestions, tmp_path), tmp_path)[0]
    assert diff.relative_path == "big.py"
    assert len(diff.hunks) == 2
    assert (diff.additions, diff.deletions) == (3, 3)


def test_build_patch_skips_unanchored_overlapping_and_out_of_range(tmp_path: Path) -> None:
    (tmp_path / "a.py").write_text("a\nb\nc\n")
    suggestions = [
        Suggestion("a.py", Category.STYLE, Severity.LOW, "t", "d", "r", code=CodeChange("a", "A")),
        _change("a.py", 2, 3, "b\nc", "BC"),
        _change("a.py", 3, 3, "c", "C"),
        _change("a.py", 4, 9, "?", "?"),
        _change("missing.py", 1, 1, "x", "y"),
    ]
    patch = build_patch(suggestions, tmp_path)
    assert patch.count("diff --git") == 1
    assert "-c\n+C\n" in patch
    assert "BC" not in patch
    assert "+A\n" not in patch
    assert "missing.py" not in patch


def test_build_patch_keeps_missing_final_newline(tmp_path: Path) -> None:
    (tmp_path / "a.py").write_text("a\nb")
    patch = build_patch([_change("a.py", 2, 2, "b", "B")], tmp_path)
    assert patch.endswith("-b\n\\ No newline at end of file\n+B\n\\ No newline at end of file\n")


def test_build_patch_without_code_changes_is_empty(tmp_path: Path) -> None:
    assert build_patch(_result().suggestions, tmp_path) == ""
