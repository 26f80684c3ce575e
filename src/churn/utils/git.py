"""Thin git plumbing: staged file list and staged unified diffs via the git executable."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

GIT_TIMEOUT_S = 30
# Diffs larger than this are truncated by git's caller anyway; keep memory bounded
MAX_DIFF_BYTES = 10 * 1024 * 1024


class GitError(Exception):
    """Raised when a git command fails or git is unavailable."""


@dataclass(frozen=True)
class GitFile:
    """A file reported by git status."""

    path: str  # Relative to the directory git ran in, posix
    status: str  # Single-letter status code (A, M, R, ...)
    staged: bool = True


def _run_git(args: list[str], cwd: Path | str) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            capture_output=True,
            timeout=GIT_TIMEOUT_S,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise GitError(f"git {' '.join(args)} failed: {e}") from e
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise GitError(f"git {' '.join(args)} exited {result.returncode}: {stderr}")
    return result.stdout[:MAX_DIFF_BYTES].decode("utf-8", errors="replace")


def is_git_repo(cwd: Path | str) -> bool:
    """True if cwd is inside a git work tree."""
    try:
        out = _run_git(["rev-parse", "--is-inside-work-tree"], cwd)
    except GitError:
        return False
    return out.strip() == "true"


def changed_files(cwd: Path | str) -> list[GitFile]:
    """
    Staged files (added, copied, modified, renamed) under cwd, with paths
    relative to cwd even when cwd is a subdirectory of the repository.
    Deleted files are omitted since there is nothing left to analyze.
    """
    out = _run_git(["diff", "--staged", "--relative", "--name-status", "--diff-filter=ACMR"], cwd)
    files: list[GitFile] = []
    for line in out.splitlines():
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        status = parts[0][:1]
        # Renames/copies report "R100\told\tnew"; the new path is last
        files.append(GitFile(path=parts[-1], status=status))
    return files


def staged_diff(cwd: Path | str, path: Path | str | None = None) -> str:
    """
    Unified diff (3 lines of context) of staged changes under cwd, optionally
    for one path. File headers are relative to cwd, matching changed_files.
    """
    args = ["diff", "--staged", "--relative", "--unified=3"]
    if path is not None:
        args += ["--", str(path)]
    return _run_git(args, cwd)
