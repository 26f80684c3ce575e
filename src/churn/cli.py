"""CLI entry point: argument parsing and subcommand dispatch."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from churn import __version__
from churn.config import load_config, resolve_path
from churn.llm import PROVIDERS


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure the churn logger: level from --verbose/--quiet or config, stderr
    handler, optional file handler from config. API keys are never logged.
    """
    config = load_config(None)
    log_cfg = config.get("logging") or {}
    if verbose:
        level_name = "DEBUG"
    elif quiet:
        level_name = "ERROR"
    else:
        level_name = (log_cfg.get("level") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger("churn")
    root.setLevel(level)
    if not root.handlers:
        fmt = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(fmt)
        root.addHandler(console)
        log_file = log_cfg.get("file")
        if log_file:
            try:
                fh = logging.FileHandler(log_file, encoding="utf-8")
            except OSError as e:
                root.warning("Cannot open log file %s: %s", log_file, e)
            else:
                fh.setFormatter(fmt)
                root.addHandler(fh)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="churn",
        description="Per-file code analysis with pluggable LLM backends, caching and bounded concurrency.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    log_group = parser.add_mutually_exclusive_group()
    log_group.add_argument("-v", "--verbose", action="store_true", help="Verbose (DEBUG) output.")
    log_group.add_argument("-q", "--quiet", action="store_true", help="Quiet (errors only).")

    # Same flags on subparsers so "churn analyze . -v" works
    global_flags = argparse.ArgumentParser(add_help=False)
    log_grp = global_flags.add_mutually_exclusive_group()
    log_grp.add_argument("-v", "--verbose", action="store_true", help=argparse.SUPPRESS)
    log_grp.add_argument("-q", "--quiet", action="store_true", help=argparse.SUPPRESS)

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    # analyze
    p_analyze = subparsers.add_parser("analyze", help="Analyze files and collect suggestions.", parents=[global_flags])
    p_analyze.add_argument("path", type=Path, nargs="?", default=Path("."), help="Project path (default: .).")
    scope = p_analyze.add_mutually_exclusive_group()
    scope.add_argument("--staged", action="store_true", help="Analyze only files staged in git (diff-only when worthwhile).")
    scope.add_argument("--files", nargs="+", metavar="FILE", help="Analyze only these files.")
    p_analyze.add_argument("--provider", choices=PROVIDERS, help="Backend provider (default: from config).")
    p_analyze.add_argument("--model", "-m", type=str, help="Model name (default: from config).")
    p_analyze.add_argument("--concurrency", "-c", type=int, help="Max concurrent backend calls (1-50).")
    p_analyze.add_argument("--include", action="append", default=[], metavar="GLOB", help="Only analyze matching files (repeatable).")
    p_analyze.add_argument("--exclude", action="append", default=[], metavar="GLOB", help="Also exclude matching files (repeatable).")
    p_analyze.add_argument("--no-report", action="store_true", help="Do not write a report under .churn/reports.")
    p_analyze.add_argument("--json", action="store_true", help="Print the full result as JSON on stdout.")
    p_analyze.add_argument("--dry-run", action="store_true", help="List the files that would be analyzed, in order, and exit.")
    p_analyze.set_defaults(run="analyze")

    # cache
    p_cache = subparsers.add_parser("cache", help="Inspect or reset the analysis cache.", parents=[global_flags])
    p_cache.add_argument("path", type=Path, nargs="?", default=Path("."), help="Project path (default: .).")
    action = p_cache.add_mutually_exclusive_group()
    action.add_argument("--stats", action="store_true", help="Show cache statistics (default).")
    action.add_argument("--clear", action="store_true", help="Remove every cache entry.")
    action.add_argument("--evict", action="store_true", help="Remove entries older than 30 days.")
    p_cache.set_defaults(run="cache")

    # context
    p_context = subparsers.add_parser("context", help="Show the detected project context and its fingerprint.", parents=[global_flags])
    p_context.add_argument("path", type=Path, nargs="?", default=Path("."), help="Project path (default: .).")
    p_context.add_argument("--json", action="store_true", help="Print as JSON.")
    p_context.set_defaults(run="context")

    # export
    p_export = subparsers.add_parser("export", help="Export the suggestions of a saved report.", parents=[global_flags])
    p_export.add_argument("path", type=Path, nargs="?", default=Path("."), help="Project path (default: .).")
    p_export.add_argument("--format", "-f", choices=("json", "markdown", "patch"), default="json", help="Output format (default: json).")
    p_export.add_argument("--output", "-o", type=Path, metavar="FILE", help="Write to FILE instead of stdout.")
    p_export.add_argument("--report", metavar="FILE", help="Report to export: a path or a name under .churn/reports (default: latest).")
    p_export.add_argument("--list", action="store_true", help="List saved reports, newest first, and exit.")
    p_export.set_defaults(run="export")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(
        verbose=getattr(args, "verbose", False),
        quiet=getattr(args, "quiet", False),
    )
    run = getattr(args, "run", None)
    if hasattr(args, "path"):
        args.path = resolve_path(args.path)

    if run == "analyze":
        from churn.commands.analyze import run as cmd_run
    elif run == "cache":
        from churn.commands.cache_cmd import run as cmd_run
    elif run == "context":
        from churn.commands.context_cmd import run as cmd_run
    elif run == "export":
        from churn.commands.export import run as cmd_run
    else:
        parser.print_help()
        sys.exit(0)

    cmd_run(args)


if __name__ == "__main__":
    main()
