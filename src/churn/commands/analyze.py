"""Analyze command: run the pipeline with live progress on stderr and a summary on stdout."""

from __future__ import annotations

import json
import sys
from argparse import Namespace
from pathlib import Path

from churn.analysis.errors import AnalysisError
from churn.analysis.models import AnalysisResult, Phase, ProgressSnapshot
from churn.analysis.pipeline import AnalysisRequest, collect_tasks, run_analysis
from churn.analysis.prioritize import merge_affinity, prioritize
from churn.config import clamp_concurrency, get_project_root, load_config
from churn.llm.base import BackendId
from churn.storage.reports import save_report

AUTH_HINT = (
    "Authentication failed. Set the provider's API key (e.g. ANTHROPIC_API_KEY, "
    "OPENAI_API_KEY, GOOGLE_API_KEY) or add it under api_keys in ~/.churn/config.json."
)
QUOTA_HINT = "Quota or billing limit reached for this provider. Check your plan, or switch provider with --provider."


def _format_seconds(seconds: float | None) -> str:
    if seconds is None:
        return "?"
    if seconds < 60:
        return f"{seconds:.0f}s"
    return f"{int(seconds // 60)}m{int(seconds % 60):02d}s"


class ProgressPrinter:
    """Progress observer that writes one line per snapshot to stderr."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stderr

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        if snapshot.phase is Phase.ANALYZING:
            line = f"  [{snapshot.completed}/{snapshot.total}] {snapshot.current_file or ''}"
            if snapshot.in_flight_count:
                line += f" ({snapshot.in_flight_count} in flight"
                if snapshot.eta is not None:
                    line += f", eta {_format_seconds(snapshot.eta)}"
                line += ")"
        else:
            line = f"{snapshot.phase.value}: {snapshot.message or ''}"
        print(line, file=self.stream)


def _print_summary(result: AnalysisResult) -> None:
    s = result.summary
    print(f"Analysis complete ({result.metadata.provider}:{result.metadata.model})")
    print()
    print(f"  Files analyzed: {s.files_analyzed}")
    print(f"  Files skipped:  {s.files_skipped}")
    print(f"  Files failed:   {s.files_failed}")
    print(f"  Cache hits:     {s.cache_hits}")
    print(f"  Suggestions:    {s.suggestions}")
    for category, count in sorted(s.categories.items()):
        print(f"    {category}: {count}")
    print(f"  Tokens used:    {s.tokens_used} (saved {s.tokens_saved})")
    print(f"  Estimated cost: ${s.estimated_cost:.4f} (saved ${s.cost_saved:.4f})")
    print(f"  Duration:       {_format_seconds(s.duration)}")
    suggestions = result.sorted_suggestions()
    if suggestions:
        print()
        for sug in suggestions:
            print(f"  [{sug.severity.value}] {sug.file}: {sug.title} ({sug.category.value})")


def _print_failure_hints(result: AnalysisResult) -> None:
    kinds = {f.kind for f in result.failures}
    if "auth" in kinds:
        print(AUTH_HINT, file=sys.stderr)
    if "quota" in kinds:
        print(QUOTA_HINT, file=sys.stderr)
    for failure in result.failures:
        print(f"  failed: {failure.file} ({failure.kind}): {failure.message}", file=sys.stderr)


def run(args: Namespace) -> None:
    """Run the analyze command."""
    root: Path = getattr(args, "path", Path(".")).resolve()
    staged = getattr(args, "staged", False)
    if staged:
        # Staged runs cover the whole project, not just the current directory
        root = get_project_root(root)
    config = load_config(root if root.is_dir() else None)
    default_model = config.get("default_model") or {}
    provider = getattr(args, "provider", None) or default_model.get("provider") or "ollama"
    model = getattr(args, "model", None) or default_model.get("model")
    if not model:
        print("Error: --model is required (or set default_model.model in config).", file=sys.stderr)
        sys.exit(1)
    backend_id = BackendId(provider=provider, model=model)

    if staged:
        mode = "staged"
    elif getattr(args, "files", None):
        mode = "files"
    else:
        mode = "full"
    request = AnalysisRequest(
        mode=mode,
        files=list(getattr(args, "files", None) or []),
        include=list(getattr(args, "include", None) or []),
        exclude=list(getattr(args, "exclude", None) or []),
    )
    concurrency = getattr(args, "concurrency", None)
    if concurrency is not None:
        concurrency = clamp_concurrency(concurrency)

    try:
        if getattr(args, "dry_run", False):
            tasks, skipped = collect_tasks(root, request, config)
            ordered = prioritize(
                tasks, backend_id, merge_affinity((config.get("prioritizer") or {}).get("affinity"))
            )
            for task in ordered:
                print(f"  would analyze: {task.relative_path} ({task.size} bytes)")
            print(f"{len(ordered)} files would be analyzed with {backend_id}, {skipped} skipped.")
            return
        quiet = getattr(args, "quiet", False)
        result = run_analysis(
            root,
            request,
            backend_id,
            on_progress=None if quiet else ProgressPrinter(),
            concurrency=concurrency,
            config=config,
        )
    except AnalysisError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.kind == "auth":
            print(AUTH_HINT, file=sys.stderr)
        sys.exit(1)

    if not getattr(args, "no_report", False):
        try:
            report_path = save_report(result, root)
            print(f"Report written to {report_path}", file=sys.stderr)
        except OSError as e:
            print(f"Warning: could not write report: {e}", file=sys.stderr)

    if getattr(args, "json", False):
        print(json.dumps(result.to_dict(), indent=2))
    else:
        _print_summary(result)
    if result.failures:
        _print_failure_hints(result)
