"""Data models for the analysis pipeline: tasks, project context, diffs, suggestions, progress, results."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class Category(Enum):
    """Kinds of improvement a suggestion can describe."""

    REFACTOR = "refactor"
    BUG = "bug"
    OPTIMIZATION = "optimization"
    STYLE = "style"
    DOCUMENTATION = "documentation"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Phase(Enum):
    """Pipeline phase reported in progress snapshots."""

    SCANNING = "scanning"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    COMPLETE = "complete"


class DiffLineKind(Enum):
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"


@dataclass(frozen=True)
class AnalysisTask:
    """One file scheduled for analysis. Created during scanning, discarded after completion."""

    path: Path  # Absolute
    relative_path: str  # Posix, relative to project root; also the cache key
    size: int  # Bytes
    extension: str  # Lowercase with leading dot, "" if none

    @classmethod
    def from_path(cls, path: Path, root: Path) -> "AnalysisTask":
        """Build a task from a file on disk. Raises OSError if the file cannot be stat'ed."""
        path = path.resolve()
        size = path.stat().st_size
        try:
            rel = path.relative_to(root.resolve()).as_posix()
        except ValueError:
            rel = path.as_posix()
        return cls(path=path, relative_path=rel, size=size, extension=path.suffix.lower())


# --- Project context ---


@dataclass(frozen=True)
class ProjectTools:
    package_manager: Optional[str] = None  # npm, yarn, pnpm, bun
    bundler: Optional[str] = None  # vite, webpack, rollup, esbuild, turbopack
    test_framework: Optional[str] = None  # jest, vitest, pytest, cargo-test, go-test
    linter: Optional[str] = None  # eslint, pylint, clippy, golangci-lint


@dataclass(frozen=True)
class ProjectConventions:
    strict: Optional[bool] = None  # TypeScript strict mode; None when not applicable
    target: Optional[str] = None  # TypeScript compile target
    has_tests: bool = False


@dataclass(frozen=True)
class ProjectContext:
    """What the project root says about language, framework, tooling and conventions."""

    type: str = "unknown"  # javascript, typescript, python, rust, go, unknown
    framework: Optional[str] = None
    tools: ProjectTools = field(default_factory=ProjectTools)
    conventions: ProjectConventions = field(default_factory=ProjectConventions)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# --- Diffs ---


@dataclass(frozen=True)
class DiffLine:
    kind: DiffLineKind
    line_number: Optional[int]  # Line in the new file; None for removed lines
    content: str


@dataclass
class DiffHunk:
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: list[DiffLine] = field(default_factory=list)


@dataclass
class FileDiff:
    """Structured staged diff for one file."""

    file_path: Path  # Absolute
    relative_path: str
    hunks: list[DiffHunk] = field(default_factory=list)
    additions: int = 0
    deletions: int = 0

    @property
    def total_changes(self) -> int:
        return self.additions + self.deletions

    @property
    def line_count(self) -> int:
        return sum(len(h.lines) for h in self.hunks)


# --- Suggestions ---


@dataclass(frozen=True)
class CodeChange:
    before: str
    after: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None


@dataclass(frozen=True)
class Suggestion:
    """One improvement suggestion for a file, as returned by a backend."""

    file: str  # Relative path
    category: Category
    severity: Severity
    title: str
    description: str
    recommendation: str
    code: Optional[CodeChange] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file": self.file,
            "category": self.category.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
        }
        if self.code is not None:
            data["code"] = {
                "before": self.code.before,
                "after": self.code.after,
                "start_line": self.code.start_line,
                "end_line": self.code.end_line,
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Suggestion":
        """Rebuild from to_dict() output. Raises KeyError/ValueError/TypeError on bad data."""
        if not isinstance(data, dict):
            raise TypeError(f"suggestion must be an object, got {type(data).__name__}")
        code = data.get("code")
        if code is not None and not isinstance(code, dict):
            raise TypeError(f"suggestion code must be an object, got {type(code).__name__}")
        return cls(
            file=str(data["file"]),
            category=Category(data["category"]),
            severity=Severity(data["severity"]),
            title=str(data["title"]),
            description=str(data["description"]),
            recommendation=str(data["recommendation"]),
            code=CodeChange(
                before=str(code["before"]),
                after=str(code["after"]),
                start_line=code.get("start_line"),
                end_line=code.get("end_line"),
            )
            if code
            else None,
        )


# --- Progress ---


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time progress emitted to the observer. Never stored."""

    phase: Phase
    completed: int
    total: int
    current_file: Optional[str] = None
    in_flight: tuple[str, ...] = ()  # Bounded preview of files being analyzed
    in_flight_count: int = 0
    avg_time_per_item: Optional[float] = None  # Seconds
    eta: Optional[float] = None  # Seconds
    message: Optional[str] = None


# --- Per-task outcome and results ---


@dataclass
class TaskOutcome:
    """
    Result of analyzing one task. `cached` is set by the cache lookup, never
    inferred from timing. `error` is set when the file produced no suggestions
    because of a failure; `error_kind` mirrors the backend error taxonomy.
    """

    suggestions: list[Suggestion] = field(default_factory=list)
    cached: bool = False
    token_count: int = 0
    mode: str = "full"
    content: Optional[bytes] = None  # The exact bytes analyzed, for the cache write
    malformed: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class FileFailure:
    file: str
    kind: str  # auth, quota, rate_limit, network, permanent, error
    message: str


@dataclass
class AnalysisSummary:
    files_analyzed: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    suggestions: int = 0
    categories: dict[str, int] = field(default_factory=dict)
    duration: float = 0.0  # Seconds
    cache_hits: int = 0
    tokens_used: int = 0
    tokens_saved: int = 0
    estimated_cost: float = 0.0  # USD
    cost_saved: float = 0.0  # USD


@dataclass
class AnalysisMetadata:
    timestamp: str
    provider: str
    model: str
    mode: str
    prompt_version: str
    project_type: Optional[str] = None
    framework: Optional[str] = None


@dataclass
class AnalysisResult:
    """Terminal artifact of one run."""

    summary: AnalysisSummary
    suggestions: list[Suggestion]
    metadata: AnalysisMetadata
    failures: list[FileFailure] = field(default_factory=list)

    def sorted_suggestions(self) -> list[Suggestion]:
        """Suggestions in deterministic order (completion order is not)."""
        severity_rank = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}
        return sorted(
            self.suggestions,
            key=lambda s: (s.file, severity_rank[s.severity], s.title),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": asdict(self.summary),
            "suggestions": [s.to_dict() for s in self.sorted_suggestions()],
            "failures": [asdict(f) for f in self.failures],
            "metadata": asdict(self.metadata),
        }
