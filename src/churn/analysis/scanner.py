"""Repository scanning: which files a run analyzes (full tree, staged changes, or an explicit list)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pathspec import PathSpec

from churn.analysis.models import AnalysisTask
from churn.utils import git
from churn.utils.ignore import build_spec, is_ignored, load_patterns

logger = logging.getLogger(__name__)

# Files larger than this are skipped, never truncated
MAX_FILE_SIZE = 100_000

SCAN_MODES = ("full", "staged", "files")


def _walk(directory: Path, project_root: Path, spec: PathSpec, out: list[Path]) -> None:
    """Depth-first walk in sorted order, pruning ignored directories and dot entries."""
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.debug("Cannot list %s: %s", directory, e)
        return
    for entry in entries:
        if entry.is_symlink() or entry.name.startswith("."):
            continue
        if entry.is_dir():
            if not is_ignored(entry, project_root, spec):
                _walk(entry, project_root, spec, out)
        elif entry.is_file() and not is_ignored(entry, project_root, spec):
            out.append(entry)


def _matches_include(path: Path, project_root: Path, include: PathSpec | None) -> bool:
    if include is None:
        return True
    return include.match_file(path.relative_to(project_root).as_posix())


def scan_files(
    project_root: Path,
    mode: str = "full",
    config: dict[str, Any] | None = None,
    files: list[str | Path] | None = None,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
) -> list[Path]:
    """
    Return absolute paths to analyze, in scan order.

    full: walk the tree, skipping dot entries and honoring default excludes,
    .churnignore, .gitignore, config patterns and exclude; keep only include
    matches if given.
    staged: files staged in git (raises GitError if git fails).
    files: the explicit list, resolved against project_root; missing files are dropped.
    """
    project_root = project_root.resolve()
    if mode not in SCAN_MODES:
        raise ValueError(f"Unknown scan mode {mode!r}")

    if mode == "staged":
        return [
            (project_root / f.path).resolve()
            for f in git.changed_files(project_root)
            if (project_root / f.path).is_file()
        ]

    if mode == "files":
        paths: list[Path] = []
        for f in files or []:
            p = Path(f)
            p = (p if p.is_absolute() else project_root / p).resolve()
            if p.is_file():
                paths.append(p)
            else:
                logger.warning("Skipping %s: not a file", f)
        return paths

    patterns = [p for p, _ in load_patterns(project_root, config or {}, extra=exclude)]
    spec = build_spec(patterns)
    include_spec = build_spec(include) if include else None
    found: list[Path] = []
    _walk(project_root, project_root, spec, found)
    return [p for p in found if _matches_include(p, project_root, include_spec)]


def build_tasks(
    paths: list[Path],
    project_root: Path,
    max_size: int = MAX_FILE_SIZE,
) -> tuple[list[AnalysisTask], int]:
    """Turn paths into tasks. Returns (tasks, skipped) where skipped counts oversized or unreadable files."""
    tasks: list[AnalysisTask] = []
    skipped = 0
    seen: set[str] = set()
    for path in paths:
        try:
            task = AnalysisTask.from_path(path, project_root)
        except OSError as e:
            logger.debug("Skipping unreadable %s: %s", path, e)
            skipped += 1
            continue
        if task.relative_path in seen:
            continue
        seen.add(task.relative_path)
        if task.size > max_size:
            logger.info("Skipping %s: %d bytes exceeds %d", task.relative_path, task.size, max_size)
            skipped += 1
            continue
        tasks.append(task)
    return tasks, skipped
