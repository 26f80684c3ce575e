"""Unit tests for project context detection and fingerprinting."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from churn.analysis.context import (
    detect_project_context,
    hash_project_context,
    is_config_file,
    is_test_file,
)
from churn.analysis.models import ProjectContext, ProjectConventions, ProjectTools


def _write_json(path: Path, data: dict) -> None:
    path.write_text(json.dumps(data))


def test_empty_directory_is_unknown(tmp_path: Path) -> None:
    ctx = detect_project_context(tmp_path)
    assert ctx.type == "unknown"
    assert ctx.framework is None
    assert ctx.conventions.has_tests is False


def test_typescript_react_project(tmp_path: Path) -> None:
    _write_json(tmp_path / "package.json", {"dependencies": {"react": "^18"}, "devDependencies": {"vite": "^5", "vitest": "^1"}})
    _write_json(tmp_path / "tsconfig.json", {"compilerOptions": {"strict": True, "target": "ES2022"}})
    (tmp_path / "pnpm-lock.yaml").write_text("")
    (tmp_path / "tests").mkdir()
    ctx = detect_project_context(tmp_path)
    assert ctx.type == "typescript"
    assert ctx.framework == "React"
    assert ctx.tools == ProjectTools(package_manager="pnpm", bundler="vite", test_framework="vitest", linter=None)
    assert ctx.conventions == ProjectConventions(strict=True, target="ES2022", has_tests=True)


def test_next_wins_over_react(tmp_path: Path) -> None:
    _write_json(tmp_path / "package.json", {"dependencies": {"react": "18", "next": "14"}})
    assert detect_project_context(tmp_path).framework == "Next.js"


def test_javascript_without_tsconfig(tmp_path: Path) -> None:
    _write_json(tmp_path / "package.json", {"dependencies": {"express": "4"}})
    ctx = detect_project_context(tmp_path)
    assert ctx.type == "javascript"
    assert ctx.framework == "Express"
    assert ctx.conventions.strict is None


def test_unparsable_tsconfig_falls_back_to_defaults(tmp_path: Path) -> None:
    """tsconfig with comments is not JSON; strict defaults to False, target to ES2015."""
    _write_json(tmp_path / "package.json", {})
    (tmp_path / "tsconfig.json").write_text("{ // comment\n \"compilerOptions\": {} }")
    ctx = detect_project_context(tmp_path)
    assert ctx.type == "typescript"
    assert ctx.conventions.strict is False
    assert ctx.conventions.target == "ES2015"


@pytest.mark.parametrize(
    "tsconfig",
    [
        {"compilerOptions": "strict"},
        {"compilerOptions": True},
        {"compilerOptions": ["strict"]},
        {"compilerOptions": {"strict": "yes", "target": 2020}},
    ],
)
def test_odd_compiler_options_fall_back_to_defaults(tmp_path: Path, tsconfig: dict) -> None:
    _write_json(tmp_path / "package.json", {})
    _write_json(tmp_path / "tsconfig.json", tsconfig)
    ctx = detect_project_context(tmp_path)
    assert ctx.type == "typescript"
    assert ctx.conventions.strict is False
    assert ctx.conventions.target == "ES2015"


def test_malformed_package_json_falls_through(tmp_path: Path) -> None:
    """A broken package.json never aborts detection; the next manifest is used."""
    (tmp_path / "package.json").write_text("{broken")
    (tmp_path / "go.mod").write_text("module x\n\nrequire github.com/gin-gonic/gin v1.9.0\n")
    ctx = detect_project_context(tmp_path)
    assert ctx.type == "go"
    assert ctx.framework == "Gin"
    assert ctx.tools.test_framework == "go-test"


def test_rust_project(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text('[dependencies]\ntokio = "1"\n')
    ctx = detect_project_context(tmp_path)
    assert (ctx.type, ctx.framework) == ("rust", "Tokio")
    assert ctx.tools.linter == "clippy"


def test_python_pyproject_takes_precedence(tmp_path: Path) -> None:
    (tmp_path / "requirements.txt").write_text("flask\npytest\n")
    (tmp_path / "pyproject.toml").write_text('[project]\ndependencies = ["fastapi"]\n')
    ctx = detect_project_context(tmp_path)
    assert ctx.type == "python"
    assert ctx.framework == "FastAPI"
    assert ctx.tools.test_framework == "pytest"


def test_has_tests_from_src_file_names(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.test.js").write_text("")
    assert detect_project_context(tmp_path).conventions.has_tests is True


# --- hash_project_context ---


def test_hash_ignores_tooling() -> None:
    a = ProjectContext(type="typescript", framework="React", tools=ProjectTools(bundler="vite"),
                       conventions=ProjectConventions(strict=True))
    b = ProjectContext(type="typescript", framework="React", tools=ProjectTools(bundler="webpack"),
                       conventions=ProjectConventions(strict=True, has_tests=True))
    assert hash_project_context(a) == hash_project_context(b)


def test_hash_changes_with_strictness_framework_and_type() -> None:
    base = ProjectContext(type="typescript", framework="React", conventions=ProjectConventions(strict=True))
    h = hash_project_context(base)
    assert h != hash_project_context(ProjectContext(type="typescript", framework="React",
                                                    conventions=ProjectConventions(strict=False)))
    assert h != hash_project_context(ProjectContext(type="typescript", framework="Vue",
                                                    conventions=ProjectConventions(strict=True)))
    assert h != hash_project_context(ProjectContext(type="javascript", framework="React",
                                                    conventions=ProjectConventions(strict=True)))


# --- helpers ---


def test_is_test_file() -> None:
    assert is_test_file("src/app.test.ts")
    assert is_test_file("tests/unit/helpers.py")
    assert is_test_file("test_models.py")
    assert is_test_file("pkg/server_test.go")
    assert not is_test_file("src/app.ts")


def test_is_config_file() -> None:
    assert is_config_file("settings.yaml")
    assert is_config_file("vite.config.ts")
    assert is_config_file("tsconfig.json")
    assert not is_config_file("src/main.py")
