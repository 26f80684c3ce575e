"""Ignore pattern support: default excludes, .churnignore, .gitignore, and config patterns (gitignore syntax)."""

from __future__ import annotations

from pathlib import Path

from pathspec import PathSpec

CHURNIGNORE = ".churnignore"
GITIGNORE = ".gitignore"

# Paths never worth sending to a backend
DEFAULT_EXCLUDE = [
    # Dependencies and vendor code
    "node_modules/",
    "vendor/",
    "third_party/",
    # Version control
    ".git/",
    ".svn/",
    ".hg/",
    # Build outputs
    "dist/",
    "build/",
    "out/",
    ".next/",
    ".nuxt/",
    # Tool directories
    ".churn/",
    ".vscode/",
    ".idea/",
    "__pycache__/",
    ".venv/",
    # Generated code
    "generated/",
    "__generated__/",
    "gen/",
    # Minified and compiled
    "*.min.js",
    "*.min.css",
    "*.bundle.js",
    "*.map",
    "*.pyc",
    # Lock files
    "*.lock",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
    # Type definitions (usually generated)
    "*.d.ts",
    # Test files (analyzed separately)
    "*.test.ts",
    "*.test.tsx",
    "*.test.js",
    "*.test.jsx",
    "*.spec.ts",
    "*.spec.tsx",
    "*.spec.js",
    "*.spec.jsx",
    "__tests__/",
    "__mocks__/",
    # Documentation build outputs
    "docs/_build/",
    "site/",
]


def parse_ignore_file(path: Path) -> list[str]:
    """
    Read a gitignore-style file and return non-empty pattern lines (strip comments and blanks).
    """
    if not path.is_file():
        return []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []
    patterns: list[str] = []
    for line in lines:
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        patterns.append(s)
    return patterns


def load_patterns(
    project_root: Path,
    config: dict,
    extra: list[str] | None = None,
) -> list[tuple[str, str]]:
    """
    Build combined pattern list from defaults, config and files.

    Returns list of (pattern, source) where source is 'default', 'builtin', 'file',
    'gitignore', 'additional' or 'cli'. Respects ignore.use_gitignore for reading .gitignore.
    """
    project_root = Path(project_root).resolve()
    ignore_cfg = config.get("ignore", {}) or {}
    use_gitignore = ignore_cfg.get("use_gitignore", True)
    builtin = list(ignore_cfg.get("builtin_patterns", []) or [])
    additional = list(ignore_cfg.get("additional_patterns", []) or [])

    result: list[tuple[str, str]] = [(p, "default") for p in DEFAULT_EXCLUDE]
    for p in builtin:
        result.append((p, "builtin"))
    for p in parse_ignore_file(project_root / CHURNIGNORE):
        result.append((p, "file"))
    if use_gitignore:
        for p in parse_ignore_file(project_root / GITIGNORE):
            result.append((p, "gitignore"))
    for p in additional:
        result.append((p, "additional"))
    for p in extra or []:
        result.append((p, "cli"))
    return result


def build_spec(patterns: list[str]) -> PathSpec:
    """Build a PathSpec from pattern strings (gitignore-style)."""
    return PathSpec.from_lines("gitwildmatch", patterns)


def is_ignored(
    path: Path | str,
    project_root: Path | str,
    spec: PathSpec,
) -> bool:
    """
    Return True if the path is ignored by the given spec.

    path is made relative to project_root and normalised to posix for matching.
    Paths outside project_root are never ignored.
    """
    path = Path(path).resolve()
    root = Path(project_root).resolve()
    try:
        rel = path.relative_to(root)
    except ValueError:
        return False
    rel_str = rel.as_posix()
    if rel_str == ".":
        return False
    if spec.match_file(rel_str):
        return True
    # Directory-only patterns (e.g. "node_modules/") need the trailing slash
    if not rel_str.endswith("/") and spec.match_file(rel_str + "/"):
        return True
    return False
