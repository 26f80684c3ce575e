"""Export command: write the suggestions of a saved report as JSON, Markdown or a patch."""

from __future__ import annotations

import sys
from argparse import Namespace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from churn.config import get_project_root, reports_dir
from churn.storage.reports import (
    export_suggestions,
    list_reports,
    load_last_report,
    read_report,
)


def _print_reports(project_root: Path) -> None:
    reports = list_reports(project_root)
    if not reports:
        print("No saved reports.")
        return
    print(f"Reports ({reports_dir(project_root)})")
    print()
    for path in reports:
        report = read_report(path) or {}
        analysis = report.get("analysis") or {}
        count = len(analysis.get("suggestions") or [])
        saved = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        print(f"  {path.name}  {saved}  {count} suggestions")


def _resolve_report(project_root: Path, name: str | None) -> dict[str, Any] | None:
    """The named report (a path, or a file name under .churn/reports), else the latest one."""
    if not name:
        return load_last_report(project_root)
    candidate = Path(name)
    if not candidate.is_file():
        candidate = reports_dir(project_root) / name
    return read_report(candidate)


def run(args: Namespace) -> None:
    """Run the export command."""
    path: Path = getattr(args, "path", Path(".")).resolve()
    project_root = get_project_root(path)

    if getattr(args, "list", False):
        _print_reports(project_root)
        return

    report = _resolve_report(project_root, getattr(args, "report", None))
    if report is None:
        print("Error: no report found; run `churn analyze` first.", file=sys.stderr)
        sys.exit(1)

    fmt = getattr(args, "format", "json")
    try:
        text = export_suggestions(report, fmt, project_root)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if fmt == "patch" and not text:
        print("No suggestions with line-anchored code changes to export.", file=sys.stderr)

    output = getattr(args, "output", None)
    if output is None:
        sys.stdout.write(text)
        return
    output = Path(output)
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        print(f"Error: cannot write {output}: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Exported {fmt} to {output}")
