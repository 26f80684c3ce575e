"""
Pipeline orchestration: scan, detect context, load cache, prioritize, schedule
backend calls, persist the cache and account for tokens and cost.
"""

from __future__ import annotations

import logging
import os
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from churn.analysis.context import detect_project_context, hash_project_context
from churn.analysis.differential import (
    DEFAULT_MAX_CHANGES,
    DEFAULT_MIN_TOKEN_SAVINGS,
    should_use_diff,
    staged_diffs,
)
from churn.analysis.errors import AnalysisError, RetriesExhaustedError
from churn.analysis.models import (
    AnalysisMetadata,
    AnalysisResult,
    AnalysisSummary,
    AnalysisTask,
    FileDiff,
    Phase,
    ProgressSnapshot,
    ProjectContext,
    TaskOutcome,
)
from churn.analysis.prioritize import merge_affinity, prioritize
from churn.analysis.retry import RetryPolicy, call_with_retry
from churn.analysis.scanner import MAX_FILE_SIZE, build_tasks, scan_files
from churn.analysis.scheduler import ProgressObserver, Scheduler
from churn.analysis.suggestions import parse_suggestions
from churn.config import cache_dir, get_concurrency, load_config
from churn.llm import create_backend
from churn.llm.base import Backend, BackendId, prompt_length
from churn.llm.errors import AuthenticationError, BackendError
from churn.llm.pricing import calculate_cost, estimate_tokens
from churn.llm.prompts import PROMPT_VERSION, FileInfo, build_messages
from churn.storage.cache import CacheStore
from churn.utils import git
from churn.utils.git import GitError

logger = logging.getLogger(__name__)


@dataclass
class AnalysisRequest:
    """What to analyze: mode full|staged|files, plus optional file list and patterns."""

    mode: str = "full"
    files: list[str] = field(default_factory=list)
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    max_file_size: int = MAX_FILE_SIZE


class FileAnalyzer:
    """
    Per-file analysis hooks for the scheduler.

    lookup() and on_complete() run on the coordinating thread and are the only
    code touching the cache. work() runs on worker threads and only reads
    shared state.
    """

    def __init__(
        self,
        backend: Backend,
        backend_id: BackendId,
        context: ProjectContext,
        context_hash: str,
        cache: CacheStore,
        mode: str = "full",
        diffs: dict[str, FileDiff] | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        max_changes: int = DEFAULT_MAX_CHANGES,
        min_token_savings: int = DEFAULT_MIN_TOKEN_SAVINGS,
    ) -> None:
        self.backend = backend
        self.backend_id = backend_id
        self.context = context
        self.context_hash = context_hash
        self.cache = cache
        self.mode = mode
        self.diffs = diffs or {}
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.max_changes = max_changes
        self.min_token_savings = min_token_savings
        self.tokens_used = 0
        self.tokens_saved = 0

    def lookup(self, task: AnalysisTask) -> TaskOutcome | None:
        try:
            content = task.path.read_bytes()
        except OSError as e:
            logger.debug("Cannot read %s for cache lookup: %s", task.relative_path, e)
            return None
        entry = self.cache.lookup(
            task.relative_path, content, self.backend_id, PROMPT_VERSION, self.context_hash
        )
        if entry is None:
            return None
        logger.debug("Cache hit: %s", task.relative_path)
        return TaskOutcome(
            suggestions=list(entry.suggestions),
            cached=True,
            token_count=entry.token_count or 0,
            content=content,
        )

    def work(self, task: AnalysisTask) -> TaskOutcome:
        """Analyze one file with the backend. Raises OSError if the file cannot be read."""
        content = task.path.read_bytes()
        text = content.decode("utf-8", errors="replace")
        diff = self.diffs.get(task.relative_path)
        use_diff = should_use_diff(
            diff, len(content), self.mode, self.max_changes, self.min_token_savings
        )
        mode = "diff" if use_diff else "full"
        messages = build_messages(FileInfo.create(task.relative_path, text), self.context, mode, diff)
        token_count = estimate_tokens(prompt_length(messages))

        def send() -> str:
            return self.backend.send(self.backend_id.model, messages)

        try:
            response = call_with_retry(send, self.policy, self.sleep, label=task.relative_path)
        except RetriesExhaustedError as e:
            logger.warning("Giving up on %s: %s", task.relative_path, e)
            return TaskOutcome(
                mode=mode,
                error=str(e.last_error),
                error_kind=getattr(e.last_error, "kind", "error"),
            )
        except BackendError as e:
            logger.warning("Backend error for %s: %s", task.relative_path, e)
            return TaskOutcome(mode=mode, error=str(e), error_kind=e.kind)

        suggestions = parse_suggestions(response, task.relative_path)
        if suggestions is None:
            logger.warning("Malformed response for %s; no suggestions recorded", task.relative_path)
            return TaskOutcome(token_count=token_count, mode=mode, content=content, malformed=True)
        return TaskOutcome(suggestions=suggestions, token_count=token_count, mode=mode, content=content)

    def on_complete(self, task: AnalysisTask, outcome: TaskOutcome) -> None:
        if outcome.cached:
            self.tokens_saved += outcome.token_count
            return
        if outcome.failed:
            return
        self.tokens_used += outcome.token_count
        if outcome.malformed or outcome.content is None:
            return
        self.cache.put(
            task.relative_path,
            outcome.content,
            outcome.suggestions,
            self.backend_id,
            PROMPT_VERSION,
            self.context_hash,
            token_count=outcome.token_count,
        )


def _notify(on_progress: ProgressObserver | None, snapshot: ProgressSnapshot) -> None:
    if on_progress is None:
        return
    try:
        on_progress(snapshot)
    except Exception:
        logger.exception("Progress observer raised; ignoring")


def _check_root(root: Path) -> Path:
    root = Path(root).resolve()
    if not root.is_dir():
        raise AnalysisError(f"Not a directory: {root}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise AnalysisError(f"Directory is not readable: {root}")
    return root


def collect_tasks(
    root: Path,
    request: AnalysisRequest,
    config: dict[str, Any],
) -> tuple[list[AnalysisTask], int]:
    """Scan and build tasks for request. Returns (tasks, skipped). Raises AnalysisError."""
    root = _check_root(root)
    if request.mode == "staged" and not git.is_git_repo(root):
        raise AnalysisError(f"Cannot list staged files: {root} is not inside a git repository")
    try:
        paths = scan_files(
            root,
            mode=request.mode,
            config=config,
            files=list(request.files),
            include=list(request.include) or None,
            exclude=list(request.exclude) or None,
        )
    except GitError as e:
        raise AnalysisError(f"Cannot list staged files: {e}") from e
    except ValueError as e:
        raise AnalysisError(str(e)) from e
    return build_tasks(paths, root, request.max_file_size)


def run_analysis(
    root: Path | str,
    request: AnalysisRequest,
    backend_config: BackendId,
    backend: Backend | None = None,
    on_progress: ProgressObserver | None = None,
    concurrency: int | None = None,
    config: dict[str, Any] | None = None,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AnalysisResult:
    """
    Run one analysis end to end and return the result.

    Raises AnalysisError only for pre-flight problems (bad root, git failure in
    staged mode, missing credentials). Per-file failures are recorded in
    result.failures and never abort the run.
    """
    started = time.monotonic()
    root = _check_root(Path(root))
    config = config if config is not None else load_config(root)

    _notify(on_progress, ProgressSnapshot(phase=Phase.SCANNING, completed=0, total=0, message="Scanning files"))
    tasks, skipped = collect_tasks(root, request, config)
    _notify(
        on_progress,
        ProgressSnapshot(
            phase=Phase.SCANNING, completed=0, total=len(tasks), message=f"Found {len(tasks)} files"
        ),
    )

    if backend is None:
        try:
            backend = create_backend(backend_config.provider, config)
        except AuthenticationError as e:
            raise AnalysisError(str(e), kind="auth") from e
        except ValueError as e:
            raise AnalysisError(str(e)) from e

    context = detect_project_context(root)
    context_hash = hash_project_context(context)
    diffs = staged_diffs(root) if request.mode == "staged" else {}

    differential_cfg = config.get("differential") or {}
    cache = CacheStore.load(cache_dir(root))
    ordered = prioritize(
        tasks,
        backend_config,
        merge_affinity((config.get("prioritizer") or {}).get("affinity")),
    )
    analyzer = FileAnalyzer(
        backend=backend,
        backend_id=backend_config,
        context=context,
        context_hash=context_hash,
        cache=cache,
        mode=request.mode,
        diffs=diffs,
        policy=policy,
        sleep=sleep,
        max_changes=int(differential_cfg.get("max_changes", DEFAULT_MAX_CHANGES)),
        min_token_savings=int(differential_cfg.get("min_token_savings", DEFAULT_MIN_TOKEN_SAVINGS)),
    )
    limit = concurrency if concurrency is not None else get_concurrency(config, backend_config.provider)
    scheduler = Scheduler(limit, on_progress)
    logger.info(
        "Analyzing %d files with %s (concurrency %d, %d skipped)",
        len(ordered), backend_config, scheduler.limit, skipped,
    )
    run = scheduler.run(ordered, analyzer.work, lookup=analyzer.lookup, on_complete=analyzer.on_complete)

    _notify(
        on_progress,
        ProgressSnapshot(
            phase=Phase.GENERATING, completed=run.completed, total=run.total, message="Saving cache"
        ),
    )
    try:
        cache.save()
    except OSError as e:
        logger.error("Could not save cache: %s", e)

    categories = Counter(s.category.value for s in run.suggestions)
    summary = AnalysisSummary(
        files_analyzed=run.completed - len(run.failures),
        files_skipped=skipped,
        files_failed=len(run.failures),
        suggestions=len(run.suggestions),
        categories=dict(categories),
        duration=time.monotonic() - started,
        cache_hits=run.cache_hits,
        tokens_used=analyzer.tokens_used,
        tokens_saved=analyzer.tokens_saved,
        estimated_cost=calculate_cost(backend_config.provider, backend_config.model, analyzer.tokens_used),
        cost_saved=calculate_cost(backend_config.provider, backend_config.model, analyzer.tokens_saved),
    )
    metadata = AnalysisMetadata(
        timestamp=datetime.now(timezone.utc).isoformat(),
        provider=backend_config.provider,
        model=backend_config.model,
        mode=request.mode,
        prompt_version=PROMPT_VERSION,
        project_type=context.type,
        framework=context.framework,
    )
    _notify(
        on_progress,
        ProgressSnapshot(
            phase=Phase.COMPLETE,
            completed=run.completed,
            total=run.total,
            message=f"Found {summary.suggestions} suggestions",
        ),
    )
    return AnalysisResult(
        summary=summary,
        suggestions=run.suggestions,
        metadata=metadata,
        failures=run.failures,
    )
