"""Versioned prompt templates for per-file analysis, selected by file kind and project context."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from churn.analysis.context import is_config_file, is_test_file
from churn.analysis.differential import build_diff_context
from churn.analysis.models import FileDiff, ProjectContext
from churn.llm.base import Message

# Bump when prompt wording or response schema changes; part of every cache key.
PROMPT_VERSION = "2.1.0"

# Extension (lowercase, with dot) -> language name shown in prompts
LANGUAGE_MAP = {
    ".py": "Python",
    ".pyi": "Python",
    ".js": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".jsx": "JavaScript (React)",
    ".ts": "TypeScript",
    ".tsx": "TypeScript (React)",
    ".go": "Go",
    ".rs": "Rust",
    ".java": "Java",
    ".kt": "Kotlin",
    ".rb": "Ruby",
    ".php": "PHP",
    ".swift": "Swift",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".cc": "C++",
    ".hpp": "C++",
    ".cs": "C#",
    ".sql": "SQL",
    ".sh": "Shell",
    ".bash": "Shell",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".json": "JSON",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".toml": "TOML",
    ".md": "Markdown",
}

TS_JS_EXTENSIONS = frozenset({".ts", ".tsx", ".js", ".jsx", ".mjs"})
PYTHON_EXTENSIONS = frozenset({".py", ".pyi"})

DIFF_SYSTEM_PROMPT = (
    "You are an expert code reviewer analyzing changes in a git diff. "
    "Focus only on issues introduced by the modifications. Respond with valid JSON only."
)


@dataclass(frozen=True)
class FileInfo:
    """A file as presented to a prompt template."""

    relative_path: str
    extension: str
    content: str
    language: str

    @classmethod
    def create(cls, relative_path: str, content: str) -> "FileInfo":
        ext = Path(relative_path).suffix.lower()
        return cls(
            relative_path=relative_path,
            extension=ext,
            content=content,
            language=detect_language(relative_path),
        )


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    system: str
    focus_areas: tuple[str, ...]
    max_suggestions: int


def detect_language(filepath: str | Path) -> str:
    """Language name for a file path based on extension. 'Unknown' if not mapped."""
    return LANGUAGE_MAP.get(Path(filepath).suffix.lower(), "Unknown")


def _schema(categories: str, severities: str, description: str, suggestion: str, before: str, after: str) -> str:
    return (
        "{\n"
        '  "suggestions": [\n'
        "    {\n"
        f'      "category": "{categories}",\n'
        f'      "severity": "{severities}",\n'
        '      "title": "Brief, specific title",\n'
        f'      "description": "{description}",\n'
        f'      "suggestion": "{suggestion}",\n'
        '      "code": {\n'
        f'        "before": "{before}",\n'
        f'        "after": "{after}",\n'
        '        "startLine": 10,\n'
        '        "endLine": 15\n'
        "      }\n"
        "    }\n"
        "  ]\n"
        "}"
    )


ALL_CATEGORIES = "refactor|bug|optimization|style|documentation"
ALL_SEVERITIES = "low|medium|high"

TEMPLATES = {
    "typescript": PromptTemplate(
        name="typescript",
        system=(
            "You are an expert TypeScript/JavaScript code reviewer specializing in modern web "
            "development. You understand React, Node.js, and the broader ecosystem. Focus on "
            "practical improvements that enhance type safety, performance, and maintainability. "
            "Respond with valid JSON only."
        ),
        focus_areas=("Type Safety", "React Hooks", "Async Patterns", "Performance", "Modern JS"),
        max_suggestions=5,
    ),
    "python": PromptTemplate(
        name="python",
        system=(
            "You are an expert Python code reviewer with deep knowledge of PEP standards, type "
            "hints, and modern Python practices. You understand frameworks like FastAPI, Django, "
            "Flask, and async Python. Focus on pythonic solutions and practical improvements. "
            "Respond with valid JSON only."
        ),
        focus_areas=("Type Hints", "Pythonic Idioms", "PEP Compliance", "Async Patterns", "Error Handling"),
        max_suggestions=5,
    ),
    "rust": PromptTemplate(
        name="rust",
        system=(
            "You are an expert Rust code reviewer with deep understanding of ownership, borrowing, "
            "lifetimes, and the Rust ecosystem. Focus on memory safety, idiomatic Rust, and "
            "performance. Respond with valid JSON only."
        ),
        focus_areas=("Ownership", "Error Handling", "Idiomatic Rust", "Memory Safety", "Performance"),
        max_suggestions=5,
    ),
    "go": PromptTemplate(
        name="go",
        system=(
            "You are an expert Go code reviewer with deep knowledge of Go idioms, concurrency "
            "patterns, and the standard library. Focus on simplicity, correctness, and "
            "performance. Respond with valid JSON only."
        ),
        focus_areas=("Error Handling", "Goroutine Safety", "Idiomatic Go", "Standard Library", "Simplicity"),
        max_suggestions=5,
    ),
    "generic": PromptTemplate(
        name="generic",
        system=(
            "You are an expert code reviewer with broad knowledge across multiple programming "
            "languages and paradigms. Focus on readability, maintainability, performance and "
            "correctness. Respond with valid JSON only."
        ),
        focus_areas=("Readability", "Error Handling", "Best Practices", "Performance", "Maintainability"),
        max_suggestions=5,
    ),
    "config": PromptTemplate(
        name="config",
        system=(
            "You are a configuration file reviewer. Focus on syntax correctness, security issues "
            "(exposed secrets, insecure settings), and common misconfigurations. Keep suggestions "
            "minimal and high-value only. Respond with valid JSON only."
        ),
        focus_areas=("Security", "Syntax", "Critical Issues"),
        max_suggestions=2,
    ),
    "test": PromptTemplate(
        name="test",
        system=(
            "You are a test code reviewer. This IS a test file, so focus on improving test "
            "quality, not on suggesting to add tests. Review test organization, assertions, edge "
            "cases, and test maintainability. Respond with valid JSON only."
        ),
        focus_areas=("Test Coverage", "Test Quality", "Organization", "Edge Cases"),
        max_suggestions=4,
    ),
}


def select_template(file: FileInfo, context: ProjectContext) -> PromptTemplate:
    """Config files first, then test files, then by language; generic otherwise."""
    ext = file.extension.lower()
    if is_config_file(file.relative_path):
        return TEMPLATES["config"]
    if is_test_file(file.relative_path):
        return TEMPLATES["test"]
    if ext in TS_JS_EXTENSIONS:
        return TEMPLATES["typescript"]
    if ext in PYTHON_EXTENSIONS:
        return TEMPLATES["python"]
    if ext == ".rs":
        return TEMPLATES["rust"]
    if ext == ".go":
        return TEMPLATES["go"]
    return TEMPLATES["generic"]


def _fence(file: FileInfo, lang: str | None = None) -> str:
    tag = lang or file.extension.lstrip(".") or "text"
    return f"```{tag}\n{file.content}\n```"


def _header(lines: list[str | None]) -> str:
    return "\n".join(line for line in lines if line)


def _typescript_prompt(file: FileInfo, context: ProjectContext) -> str:
    framework = (context.framework or "").lower()
    is_react = "react" in framework or "next" in framework
    is_ts = file.extension in (".ts", ".tsx")
    type_focus = (
        "Improve type definitions, avoid any types, use strict null checks"
        if is_ts
        else "Consider migrating critical code to TypeScript"
    )
    focus = [
        f"- **Type Safety**: {type_focus}",
        "- **Async Patterns**: Promise handling, async/await usage, error boundaries",
        "- **Modern JavaScript**: ES6+ features, optional chaining, nullish coalescing",
        "- **Performance**: Unnecessary re-renders"
        + (", memo/useMemo/useCallback opportunities" if is_react else "")
        + ", bundle size considerations",
    ]
    if is_react:
        focus.append("- **React Best Practices**: Hooks rules, dependency arrays, component composition")
        focus.append("- **State Management**: Efficient state updates, avoiding prop drilling")
    ts_line = None
    if is_ts and context.conventions.strict is not None:
        mode = "Strict mode" if context.conventions.strict else "Non-strict"
        ts_line = f"TypeScript: {mode}, Target: {context.conventions.target}"
    return (
        f"Analyze this {file.language} file and provide 3-5 actionable suggestions.\n\n"
        + _header([
            f"File: {file.relative_path}",
            f"Framework: {context.framework}" if context.framework else None,
            ts_line,
        ])
        + f"\n\n{_fence(file)}\n\nFocus your analysis on:\n"
        + "\n".join(focus)
        + "\n\nRespond in JSON format:\n"
        + _schema(
            ALL_CATEGORIES,
            ALL_SEVERITIES,
            "Detailed explanation of the issue",
            "Concrete recommendation with rationale",
            "relevant code snippet showing the issue",
            "improved version",
        )
        + "\n\nPrioritize high-impact changes. Be specific and provide working code examples."
    )


def _python_prompt(file: FileInfo, context: ProjectContext) -> str:
    focus = [
        "- **Type Hints**: Add or improve type annotations",
        "- **Pythonic Idioms**: Comprehensions, context managers, generators, decorators",
        "- **Error Handling**: Proper exception handling, custom exceptions, error messages",
        "- **Code Quality**: PEP 8 compliance, naming conventions, docstrings",
    ]
    if context.framework in ("FastAPI", "Django", "Flask"):
        focus.append(
            f"- **{context.framework} Best Practices**: Dependency injection, async endpoints, validation, security"
        )
    if "async def" in file.content:
        focus.append("- **Async Patterns**: Proper await usage, async context managers, concurrent execution")
    return (
        "Analyze this Python file and provide 3-5 actionable suggestions.\n\n"
        + _header([
            f"File: {file.relative_path}",
            f"Framework: {context.framework}" if context.framework else None,
            f"Testing: {context.tools.test_framework}" if context.tools.test_framework else None,
        ])
        + f"\n\n{_fence(file, 'python')}\n\nFocus your analysis on:\n"
        + "\n".join(focus)
        + "\n\nRespond in JSON format:\n"
        + _schema(
            ALL_CATEGORIES,
            ALL_SEVERITIES,
            "Detailed explanation",
            "Concrete pythonic recommendation",
            "current code snippet",
            "improved pythonic version",
        )
        + "\n\nPrefer pythonic solutions. Be specific with PEP references when relevant."
    )


_LANGUAGE_FOCUS = {
    "rust": (
        "- **Ownership & Borrowing**: Unnecessary clones, lifetime management, smart pointers\n"
        "- **Error Handling**: Result<T, E>, custom error types, the ? operator\n"
        "- **Idiomatic Rust**: Pattern matching, iterators over loops, method chaining\n"
        "- **Performance**: Zero-cost abstractions, avoiding allocations\n"
        "- **Safety**: Minimize unsafe blocks, interior mutability, thread safety",
        "Reference clippy lints or Rust patterns when applicable. Prioritize safety and idioms.",
    ),
    "go": (
        "- **Error Handling**: Error returns, wrapping, sentinel errors, custom error types\n"
        "- **Concurrency**: Goroutine safety, channel usage, sync primitives, context cancellation\n"
        "- **Idiomatic Go**: Small interfaces, composition, defer usage\n"
        "- **Standard Library**: Prefer stdlib over dependencies\n"
        "- **Simplicity**: Clear names, small functions, obvious code over clever code",
        "Follow Effective Go and Go Proverbs. Prioritize correctness and clarity.",
    ),
    "generic": (
        "- **Readability**: Clear variable names, function structure, comments where needed\n"
        "- **Error Handling**: Proper exception/error management for this language\n"
        "- **Best Practices**: Language-specific idioms and conventions\n"
        "- **Performance**: Unnecessary operations, better algorithms, resource usage\n"
        "- **Maintainability**: Code organization, duplication, testability",
        "Prioritize practical, implementable changes. Be specific with code examples.",
    ),
}


def _language_prompt(template: PromptTemplate, file: FileInfo, context: ProjectContext) -> str:
    focus, closing = _LANGUAGE_FOCUS[template.name]
    header = [f"File: {file.relative_path}"]
    if template.name == "generic":
        header.append(f"Language: {file.language}")
    elif context.framework:
        header.append(f"Framework: {context.framework}")
    return (
        f"Analyze this {file.language} file and provide 3-5 actionable suggestions.\n\n"
        + _header(header)
        + f"\n\n{_fence(file)}\n\nFocus your analysis on:\n{focus}\n\nRespond in JSON format:\n"
        + _schema(
            ALL_CATEGORIES,
            ALL_SEVERITIES,
            "Detailed explanation",
            "Specific recommendation",
            "current code",
            "improved version",
        )
        + f"\n\n{closing}"
    )


def _config_prompt(file: FileInfo, context: ProjectContext) -> str:
    return (
        "Analyze this configuration file. Only provide suggestions for security issues, syntax "
        "errors, or critical misconfigurations. Return 0-2 suggestions maximum.\n\n"
        f"File: {file.relative_path}\n\n{_fence(file)}\n\n"
        "Check for:\n"
        "- **Security**: Exposed API keys, passwords, tokens, insecure settings\n"
        "- **Syntax**: Valid format, proper structure, required fields\n"
        "- **Common Issues**: Deprecated options, conflicting settings\n\n"
        "Respond in JSON format:\n"
        + _schema(
            "bug|optimization|documentation",
            "medium|high",
            "What is wrong and why it matters",
            "How to fix it",
            "problematic configuration",
            "corrected configuration",
        )
        + "\n\nOnly report actionable issues. If the config looks fine, return an empty suggestions array."
    )


def _test_prompt(file: FileInfo, context: ProjectContext) -> str:
    return (
        "Analyze this test file and provide 2-4 suggestions for improving test quality.\n\n"
        + _header([
            f"File: {file.relative_path}",
            f"Framework: {context.tools.test_framework}" if context.tools.test_framework else None,
        ])
        + f"\n\n{_fence(file)}\n\n"
        "Focus your analysis on:\n"
        "- **Test Coverage**: Missing edge cases, error scenarios, boundary conditions\n"
        "- **Test Quality**: Clear test names, good assertions, no flaky tests\n"
        "- **Organization**: Setup/teardown, test independence\n"
        "- **Maintainability**: Helpers where they keep tests clear\n\n"
        "Note: This IS a test file. Do not suggest adding tests; improve the existing ones.\n\n"
        "Respond in JSON format:\n"
        + _schema(
            "refactor|bug|optimization|documentation",
            ALL_SEVERITIES,
            "What could be better in these tests",
            "How to improve test quality",
            "current test code",
            "improved test code",
        )
        + "\n\nFocus on making tests more reliable, readable, and comprehensive."
    )


def diff_prompt(diff: FileDiff, language: str) -> str:
    """User prompt for reviewing only the staged changes of a file."""
    first_line = diff.hunks[0].new_start if diff.hunks else 1
    schema = _schema(
        "bug|optimization|style",
        "medium|high",
        "What the change broke or introduced",
        "How to fix it",
        "the problematic changed line",
        "corrected version",
    ).replace('"startLine": 10', f'"startLine": {first_line}').replace('"endLine": 15', f'"endLine": {first_line}')
    return (
        "Review this code change and identify any issues introduced by the modifications.\n\n"
        f"{build_diff_context(diff)}\n"
        f"Language: {language}\n\n"
        "Focus ONLY on the changed lines (marked with +). Check for:\n"
        "- **Bugs**: Syntax, logic or type errors introduced by the change\n"
        "- **Breaking Changes**: API changes that could break existing code\n"
        "- **Security**: New vulnerabilities (injection, XSS, exposed secrets)\n"
        "- **Performance**: Obvious regressions in the new code\n"
        "- **Best Practices**: Violations of language idioms in the changed lines\n\n"
        "Only report issues you are confident were introduced by THIS change. "
        "Do not suggest improvements to unchanged code.\n\n"
        f"Respond in JSON format:\n{schema}\n\n"
        "If the changes look good, return an empty suggestions array."
    )


def user_prompt(template: PromptTemplate, file: FileInfo, context: ProjectContext) -> str:
    if template.name == "typescript":
        return _typescript_prompt(file, context)
    if template.name == "python":
        return _python_prompt(file, context)
    if template.name == "config":
        return _config_prompt(file, context)
    if template.name == "test":
        return _test_prompt(file, context)
    return _language_prompt(template, file, context)


def build_messages(
    file: FileInfo,
    context: ProjectContext,
    mode: str = "full",
    diff: FileDiff | None = None,
) -> list[Message]:
    """
    Build the system + user messages for one file. mode "diff" with a diff
    reviews only the staged changes; anything else analyzes the full file.
    """
    if mode == "diff" and diff is not None:
        return [
            Message(role="system", content=DIFF_SYSTEM_PROMPT),
            Message(role="user", content=diff_prompt(diff, file.language)),
        ]
    template = select_template(file, context)
    return [
        Message(role="system", content=template.system),
        Message(role="user", content=user_prompt(template, file, context)),
    ]
