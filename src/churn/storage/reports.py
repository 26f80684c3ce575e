"""
Run reports: timestamped JSON documents under .churn/reports with count and
age retention, and exports of a report's suggestions as JSON, Markdown or a
unified patch.
"""

from __future__ import annotations

import difflib
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from churn import __version__
from churn.analysis.models import AnalysisResult, CodeChange, Suggestion
from churn.config import reports_dir

logger = logging.getLogger(__name__)

REPORT_VERSION = "1.0.0"
REPORT_MAX_COUNT = 20
REPORT_MAX_AGE_DAYS = 30
LATEST_REPORT = "latest.json"
EXPORT_FORMATS = ("json", "markdown", "patch")
PATCH_CONTEXT_LINES = 3


def build_report(result: AnalysisResult, project_root: Path) -> dict[str, Any]:
    return {
        "version": REPORT_VERSION,
        "generator": f"churn {__version__}",
        "repository": {
            "name": project_root.resolve().name,
            "path": project_root.resolve().as_posix(),
        },
        "analysis": result.to_dict(),
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def _write_json(path: Path, data: dict[str, Any]) -> None:
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def save_report(result: AnalysisResult, project_root: Path, now: datetime | None = None) -> Path:
    """
    Write report-<timestamp>.json and latest.json, then prune old reports.
    Returns the timestamped path. Raises OSError if the reports directory is not writable.
    """
    directory = reports_dir(project_root)
    directory.mkdir(parents=True, exist_ok=True)
    now = now or datetime.now(timezone.utc)
    # Lexical order of these names is chronological order
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-%f")
    report = build_report(result, project_root)
    path = directory / f"report-{stamp}.json"
    _write_json(path, report)
    _write_json(directory / LATEST_REPORT, report)
    removed = prune_reports(directory)
    if removed:
        logger.debug("Pruned %d old reports", removed)
    return path


def prune_reports(
    directory: Path,
    max_count: int = REPORT_MAX_COUNT,
    max_age_days: int = REPORT_MAX_AGE_DAYS,
    now: float | None = None,
) -> int:
    """Delete reports beyond the newest max_count or older than max_age_days. Returns count removed."""
    now = time.time() if now is None else now
    max_age = max_age_days * 24 * 60 * 60
    reports = sorted(directory.glob("report-*.json"), key=lambda p: p.name, reverse=True)
    removed = 0
    for index, path in enumerate(reports):
        try:
            age = now - path.stat().st_mtime
            if index >= max_count or age > max_age:
                path.unlink()
                removed += 1
        except OSError as e:
            logger.warning("Could not prune report %s: %s", path, e)
    return removed


def read_report(path: Path) -> dict[str, Any] | None:
    """A report file as a dict, or None if it is missing or cannot be parsed."""
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def load_last_report(project_root: Path) -> dict[str, Any] | None:
    """The latest report, or None if there is none or it cannot be parsed."""
    return read_report(reports_dir(project_root) / LATEST_REPORT)


def list_reports(project_root: Path) -> list[Path]:
    """Timestamped report files, newest first."""
    directory = reports_dir(project_root)
    if not directory.is_dir():
        return []
    return sorted(directory.glob("report-*.json"), key=lambda p: p.name, reverse=True)


# --- Export ---


def report_suggestions(report: dict[str, Any]) -> list[Suggestion]:
    """Suggestions stored in a report, in report order. Malformed items are skipped."""
    analysis = report.get("analysis")
    raw = analysis.get("suggestions") if isinstance(analysis, dict) else None
    if not isinstance(raw, list):
        raise ValueError("report has no analysis.suggestions list")
    suggestions: list[Suggestion] = []
    for item in raw:
        try:
            suggestions.append(Suggestion.from_dict(item))
        except (KeyError, ValueError, TypeError) as e:
            logger.debug("Skipping malformed suggestion in report: %s", e)
    return suggestions


def export_json(suggestions: list[Suggestion]) -> str:
    return json.dumps([s.to_dict() for s in suggestions], indent=2) + "\n"


def export_markdown(suggestions: list[Suggestion], generated_at: str | None = None) -> str:
    """Readable report grouped by file, one section per suggestion."""
    out = ["# Churn Analysis Report", ""]
    if generated_at:
        out += [f"Generated: {generated_at}", ""]
    out += [f"Total suggestions: {len(suggestions)}", ""]

    by_file: dict[str, list[Suggestion]] = {}
    for s in suggestions:
        by_file.setdefault(s.file, []).append(s)

    for file, items in by_file.items():
        out += [f"## {file}", ""]
        for s in items:
            out += [
                f"### {s.title}",
                "",
                f"**Category**: {s.category.value}  ",
                f"**Severity**: {s.severity.value}",
                "",
                s.description,
                "",
                f"**Suggestion**: {s.recommendation}",
                "",
            ]
            if s.code is not None:
                where = ""
                if s.code.start_line is not None:
                    where = f" (lines {s.code.start_line}-{s.code.end_line or s.code.start_line})"
                out += [f"**Before**{where}:", "```", s.code.before, "```", ""]
                out += ["**After**:", "```", s.code.after, "```", ""]
            out += ["---", ""]
    return "\n".join(out)


def _apply_changes(lines: list[str], changes: list[CodeChange], file: str) -> list[str]:
    """
    Replace each change's start_line..end_line (1-based, inclusive) with its
    after text. Changes are applied bottom-up; ones that fall outside the file
    or overlap a change already applied are skipped.
    """
    result = list(lines)
    floor = len(lines) + 1
    ordered = sorted(changes, key=lambda c: (c.start_line or 0, c.end_line or 0), reverse=True)
    for change in ordered:
        start, end = change.start_line, change.end_line
        if start is None or end is None or not 1 <= start <= end <= len(lines) or end >= floor:
            logger.debug("Skipping change to %s at lines %s-%s", file, start, end)
            continue
        replacement = [line + "\n" for line in change.after.splitlines()]
        if replacement and end == len(lines) and not lines[-1].endswith("\n"):
            replacement[-1] = replacement[-1][:-1]
        result[start - 1 : end] = replacement
        floor = start
    return result


def build_patch(suggestions: list[Suggestion], project_root: Path) -> str:
    """
    Unified patch (git apply compatible) applying every line-anchored code
    change to the files under project_root. Suggestions without line numbers
    and files that cannot be read are left out.
    """
    by_file: dict[str, list[CodeChange]] = {}
    for s in suggestions:
        if s.code is not None and s.code.start_line is not None and s.code.end_line is not None:
            by_file.setdefault(s.file, []).append(s.code)

    chunks: list[str] = []
    for file in sorted(by_file):
        try:
            original = (project_root / file).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Leaving %s out of the patch: %s", file, e)
            continue
        old = original.splitlines(keepends=True)
        new = _apply_changes(old, by_file[file], file)
        if new == old:
            continue
        chunks.append(f"diff --git a/{file} b/{file}\n")
        for line in difflib.unified_diff(old, new, f"a/{file}", f"b/{file}", n=PATCH_CONTEXT_LINES):
            chunks.append(line if line.endswith("\n") else line + "\n\\ No newline at end of file\n")
    return "".join(chunks)


def export_suggestions(report: dict[str, Any], fmt: str, project_root: Path) -> str:
    """Render a report's suggestions in fmt (json, markdown or patch). Raises ValueError."""
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format {fmt!r}")
    suggestions = report_suggestions(report)
    if fmt == "json":
        return export_json(suggestions)
    if fmt == "markdown":
        return export_markdown(suggestions, report.get("generated_at"))
    return build_patch(suggestions, project_root)
