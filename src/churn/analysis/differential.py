"""
Differential analysis: parse staged diffs into hunks and decide when diff-only
analysis is worth it.

Diff-only prompts are much smaller than full files, but they lose context.
should_use_diff() applies two guards: a ceiling on changed lines (large diffs
go to full-file analysis) and a floor on estimated token savings.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from churn.analysis.models import DiffHunk, DiffLine, DiffLineKind, FileDiff
from churn.llm.pricing import estimate_tokens
from churn.utils import git

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHANGES = 100
DEFAULT_MIN_TOKEN_SAVINGS = 500

# Modes in which diff-only analysis may be chosen
DIFF_MODES = frozenset({"staged"})

_FILE_HEADER = re.compile(r"^diff --git a/(.+?) b/(.+)$")
_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass(frozen=True)
class DiffSavings:
    diff_tokens: int
    full_tokens: int
    savings: int


def parse_diff(diff_text: str, root: Path | str) -> list[FileDiff]:
    """Parse `git diff` unified output into one FileDiff per file, in order."""
    root = Path(root)
    diffs: list[FileDiff] = []
    current_file: FileDiff | None = None
    current_hunk: DiffHunk | None = None
    new_line = 0

    def flush_hunk() -> None:
        if current_file is not None and current_hunk is not None:
            current_file.hunks.append(current_hunk)

    for line in diff_text.splitlines():
        header = _FILE_HEADER.match(line)
        if header:
            flush_hunk()
            current_hunk = None
            rel = header.group(2)
            current_file = FileDiff(file_path=(root / rel).resolve(), relative_path=rel)
            diffs.append(current_file)
            continue

        if line.startswith("@@"):
            flush_hunk()
            current_hunk = None
            match = _HUNK_HEADER.match(line)
            if match and current_file is not None:
                old_start, old_lines, new_start, new_lines = match.groups()
                current_hunk = DiffHunk(
                    old_start=int(old_start),
                    old_lines=int(old_lines) if old_lines else 1,
                    new_start=int(new_start),
                    new_lines=int(new_lines) if new_lines else 1,
                )
                new_line = current_hunk.new_start
            continue

        if current_hunk is None or current_file is None:
            continue

        if line.startswith("+"):
            current_hunk.lines.append(DiffLine(DiffLineKind.ADDED, new_line, line[1:]))
            current_file.additions += 1
            new_line += 1
        elif line.startswith("-"):
            current_hunk.lines.append(DiffLine(DiffLineKind.REMOVED, None, line[1:]))
            current_file.deletions += 1
        elif line.startswith(" "):
            current_hunk.lines.append(DiffLine(DiffLineKind.CONTEXT, new_line, line[1:]))
            new_line += 1

    flush_hunk()
    return diffs


def diff_for(path: Path | str, root: Path | str) -> FileDiff | None:
    """Staged diff for one file, or None if it has no staged changes or git fails."""
    root = Path(root)
    try:
        text = git.staged_diff(root, path)
    except git.GitError as e:
        logger.debug("No staged diff for %s: %s", path, e)
        return None
    if not text.strip():
        return None
    diffs = parse_diff(text, root)
    return diffs[0] if diffs else None


def staged_diffs(root: Path | str) -> dict[str, FileDiff]:
    """All staged diffs keyed by relative path. Empty when git is unavailable."""
    root = Path(root)
    try:
        text = git.staged_diff(root)
    except git.GitError as e:
        logger.warning("Could not read staged diff, falling back to full analysis: %s", e)
        return {}
    return {d.relative_path: d for d in parse_diff(text, root)}


def build_diff_context(diff: FileDiff) -> str:
    """Compact textual rendering of a diff for prompts; much smaller than the full file."""
    lines = [
        f"File: {diff.relative_path}",
        f"Changes: +{diff.additions} -{diff.deletions}",
        "",
    ]
    for hunk in diff.hunks:
        lines.append(f"@@ Lines {hunk.new_start}-{hunk.new_start + hunk.new_lines - 1} @@")
        for dl in hunk.lines:
            if dl.kind is DiffLineKind.ADDED:
                lines.append(f"+ {dl.content}")
            elif dl.kind is DiffLineKind.REMOVED:
                lines.append(f"- {dl.content}")
            else:
                lines.append(f"  {dl.content}")
        lines.append("")
    return "\n".join(lines)


def is_diff_too_large(diff: FileDiff, max_changes: int = DEFAULT_MAX_CHANGES) -> bool:
    return diff.total_changes > max_changes


def changed_lines(diff: FileDiff) -> list[tuple[int, str]]:
    """(new line number, content) for every added line."""
    return [
        (dl.line_number, dl.content)
        for hunk in diff.hunks
        for dl in hunk.lines
        if dl.kind is DiffLineKind.ADDED and dl.line_number is not None
    ]


def estimate_diff_token_savings(diff: FileDiff, full_file_size: int) -> DiffSavings:
    diff_tokens = estimate_tokens(len(build_diff_context(diff)))
    full_tokens = estimate_tokens(full_file_size)
    return DiffSavings(diff_tokens=diff_tokens, full_tokens=full_tokens, savings=full_tokens - diff_tokens)


def should_use_diff(
    diff: FileDiff | None,
    full_file_size: int,
    mode: str,
    max_changes: int = DEFAULT_MAX_CHANGES,
    min_savings: int = DEFAULT_MIN_TOKEN_SAVINGS,
) -> bool:
    """
    True when diff-only analysis should replace full-file analysis:
    only in staged mode, only for diffs within max_changes, and only when the
    estimated token savings exceed min_savings. A policy, not a guarantee.
    """
    if diff is None or mode not in DIFF_MODES:
        return False
    if is_diff_too_large(diff, max_changes):
        return False
    return estimate_diff_token_savings(diff, full_file_size).savings > min_savings
