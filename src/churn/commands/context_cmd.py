"""Context command: print the detected project context and its cache fingerprint."""

from __future__ import annotations

import json
import sys
from argparse import Namespace
from pathlib import Path

from churn.analysis.context import detect_project_context, hash_project_context


def run(args: Namespace) -> None:
    """Run the context command."""
    root: Path = getattr(args, "path", Path(".")).resolve()
    if not root.is_dir():
        print(f"Error: not a directory: {root}", file=sys.stderr)
        sys.exit(1)
    context = detect_project_context(root)
    fingerprint = hash_project_context(context)

    if getattr(args, "json", False):
        print(json.dumps({"context": context.to_dict(), "fingerprint": fingerprint}, indent=2))
        return

    tools = context.tools
    conventions = context.conventions
    print(f"Project context ({root.as_posix()})")
    print()
    print(f"  Type:            {context.type}")
    print(f"  Framework:       {context.framework or '-'}")
    print(f"  Package manager: {tools.package_manager or '-'}")
    print(f"  Bundler:         {tools.bundler or '-'}")
    print(f"  Test framework:  {tools.test_framework or '-'}")
    print(f"  Linter:          {tools.linter or '-'}")
    if conventions.strict is not None:
        print(f"  TypeScript:      {'strict' if conventions.strict else 'non-strict'}, target {conventions.target}")
    print(f"  Has tests:       {'yes' if conventions.has_tests else 'no'}")
    print()
    print(f"  Fingerprint:     {fingerprint}")
