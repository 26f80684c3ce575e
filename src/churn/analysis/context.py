"""
Project context detection: language, framework, tooling and conventions.

Runs once per analysis, read-only. Root-level manifests are checked in a fixed
priority order (package.json, Cargo.toml, go.mod, Python manifests) and the
first recognized ecosystem wins. Unreadable or malformed manifests never abort
detection; the detector falls through to the next signal or to "unknown".
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from churn.analysis.models import ProjectContext, ProjectConventions, ProjectTools
from churn.utils.hashing import stable_json_hash

logger = logging.getLogger(__name__)

# Ordered: the first dependency present wins
JS_FRAMEWORKS = [
    ("next", "Next.js"),
    ("react", "React"),
    ("vue", "Vue"),
    ("@angular/core", "Angular"),
    ("express", "Express"),
    ("@nestjs/core", "NestJS"),
    ("svelte", "Svelte"),
]
RUST_FRAMEWORKS = [
    ("tokio", "Tokio"),
    ("actix-web", "Actix Web"),
    ("rocket", "Rocket"),
    ("axum", "Axum"),
]
GO_FRAMEWORKS = [
    ("github.com/gin-gonic/gin", "Gin"),
    ("github.com/gofiber/fiber", "Fiber"),
    ("github.com/labstack/echo", "Echo"),
]
PYTHON_FRAMEWORKS = [
    ("fastapi", "FastAPI"),
    ("django", "Django"),
    ("flask", "Flask"),
]
JS_BUNDLERS = ["vite", "webpack", "rollup", "esbuild", "turbopack"]
JS_TEST_FRAMEWORKS = ["vitest", "jest"]
LOCKFILES = [
    ("bun.lockb", "bun"),
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
]
TEST_DIRS = ["test", "tests", "__tests__", "spec"]
TEST_NAME_MARKERS = (".test.", ".spec.", "_test.")

DEFAULT_TS_TARGET = "ES2015"


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Could not read %s: %s", path, e)
        return None


def _read_json(path: Path) -> dict[str, Any] | None:
    text = _read_text(path)
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("Malformed JSON in %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def _js_dependencies(pkg: dict[str, Any]) -> dict[str, Any]:
    deps: dict[str, Any] = {}
    for key in ("dependencies", "devDependencies"):
        section = pkg.get(key)
        if isinstance(section, dict):
            deps.update(section)
    return deps


def _first_match(haystack: str, signatures: list[tuple[str, str]]) -> str | None:
    for needle, name in signatures:
        if needle in haystack:
            return name
    return None


def _first_dep(deps: dict[str, Any], signatures: list[tuple[str, str]]) -> str | None:
    for dep, name in signatures:
        if dep in deps:
            return name
    return None


def _detect_type_and_framework(root: Path) -> tuple[str, str | None, dict[str, Any]]:
    """Return (type, framework, js_dependencies)."""
    package_json = root / "package.json"
    if package_json.is_file():
        pkg = _read_json(package_json)
        if pkg is not None:
            project_type = "typescript" if (root / "tsconfig.json").is_file() else "javascript"
            deps = _js_dependencies(pkg)
            return project_type, _first_dep(deps, JS_FRAMEWORKS), deps
        # Invalid package.json: keep looking at other ecosystems

    cargo = root / "Cargo.toml"
    if cargo.is_file():
        text = _read_text(cargo) or ""
        return "rust", _first_match(text, RUST_FRAMEWORKS), {}

    go_mod = root / "go.mod"
    if go_mod.is_file():
        text = _read_text(go_mod) or ""
        return "go", _first_match(text, GO_FRAMEWORKS), {}

    requirements = root / "requirements.txt"
    pyproject = root / "pyproject.toml"
    if requirements.is_file() or pyproject.is_file():
        framework = None
        if requirements.is_file():
            framework = _first_match((_read_text(requirements) or "").lower(), PYTHON_FRAMEWORKS)
        if pyproject.is_file():
            # pyproject.toml takes precedence when it names a framework
            framework = _first_match((_read_text(pyproject) or "").lower(), PYTHON_FRAMEWORKS) or framework
        return "python", framework, {}

    return "unknown", None, {}


def _detect_tools(root: Path, project_type: str, js_deps: dict[str, Any]) -> ProjectTools:
    package_manager = None
    for lockfile, manager in LOCKFILES:
        if (root / lockfile).exists():
            package_manager = manager
            break

    bundler = None
    test_framework = None
    linter = None
    if project_type in ("javascript", "typescript"):
        bundler = next((b for b in JS_BUNDLERS if b in js_deps), None)
        test_framework = next((t for t in JS_TEST_FRAMEWORKS if t in js_deps), None)
        if any((root / name).exists() for name in (".eslintrc.js", ".eslintrc.json", "eslint.config.js")):
            linter = "eslint"
    elif project_type == "python":
        requirements = _read_text(root / "requirements.txt") if (root / "requirements.txt").is_file() else None
        if requirements and "pytest" in requirements.lower():
            test_framework = "pytest"
        if (root / ".pylintrc").exists() or (root / "pylintrc").exists():
            linter = "pylint"
    elif project_type == "rust":
        test_framework = "cargo-test"
        linter = "clippy"
    elif project_type == "go":
        test_framework = "go-test"
        if (root / ".golangci.yml").exists() or (root / ".golangci.yaml").exists():
            linter = "golangci-lint"

    return ProjectTools(
        package_manager=package_manager,
        bundler=bundler,
        test_framework=test_framework,
        linter=linter,
    )


def _detect_conventions(root: Path, project_type: str) -> ProjectConventions:
    strict: bool | None = None
    target: str | None = None
    if project_type == "typescript":
        tsconfig = _read_json(root / "tsconfig.json")
        # tsconfig.json often carries comments (JSONC); fall back to defaults
        options = (tsconfig or {}).get("compilerOptions")
        if not isinstance(options, dict):
            options = {}
        strict = options.get("strict") is True
        target = options.get("target")
        if not isinstance(target, str) or not target:
            target = DEFAULT_TS_TARGET

    has_tests = any((root / d).is_dir() for d in TEST_DIRS)
    src = root / "src"
    if not has_tests and src.is_dir():
        try:
            has_tests = any(
                any(marker in entry.name for marker in TEST_NAME_MARKERS)
                for entry in src.iterdir()
            )
        except OSError as e:
            logger.debug("Could not list %s: %s", src, e)

    return ProjectConventions(strict=strict, target=target, has_tests=has_tests)


def detect_project_context(root: Path | str) -> ProjectContext:
    """Classify the project at root. Never raises for unreadable manifests."""
    root = Path(root)
    project_type, framework, js_deps = _detect_type_and_framework(root)
    context = ProjectContext(
        type=project_type,
        framework=framework,
        tools=_detect_tools(root, project_type, js_deps),
        conventions=_detect_conventions(root, project_type),
    )
    logger.debug("Detected project context: %s", context)
    return context


def hash_project_context(context: ProjectContext) -> str:
    """
    Fingerprint of the context fields that change analysis output: type,
    framework and strictness. Tooling and test layout are left out
    so they do not invalidate cached results.
    """
    relevant = {
        "type": context.type,
        "framework": context.framework,
        "strict": context.conventions.strict,
    }
    return stable_json_hash(relevant)


def is_test_file(path: Path | str) -> bool:
    """Heuristic: test-named files or files under a test directory."""
    p = Path(path)
    name = p.name.lower()
    if any(marker in name for marker in TEST_NAME_MARKERS) or name.startswith("test_"):
        return True
    parts = {part.lower() for part in p.parts[:-1]}
    return bool(parts & {"tests", "test", "__tests__", "spec"})


CONFIG_EXTENSIONS = {".json", ".yaml", ".yml", ".toml", ".ini", ".env", ".config", ".cfg"}
CONFIG_NAME_MARKERS = ("config", "tsconfig", "webpack", "vite", "rollup")


def is_config_file(path: Path | str) -> bool:
    """Heuristic: configuration by extension or by a well-known name fragment."""
    p = Path(path)
    if p.suffix.lower() in CONFIG_EXTENSIONS:
        return True
    name = p.name.lower()
    return any(marker in name for marker in CONFIG_NAME_MARKERS)
