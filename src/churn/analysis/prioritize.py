"""
File prioritization: order tasks so likely-useful, fast results arrive first.

Only latency and feedback order depend on this; every task is still analyzed.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Mapping

from churn.analysis.models import AnalysisTask
from churn.llm.base import BackendId

BASE_PRIORITY = 100
AFFINITY_WEIGHT = 10
DEFAULT_AFFINITY = 2

# provider -> extension -> 0..5 strength of that provider's models in the language
DEFAULT_LANGUAGE_AFFINITY: dict[str, dict[str, int]] = {
    "anthropic": {
        ".ts": 5, ".tsx": 5, ".py": 5, ".rs": 5,
        ".go": 4, ".js": 4, ".jsx": 4, ".java": 4,
        ".cpp": 3, ".rb": 3, ".swift": 3, ".c": 3,
        ".php": 2,
    },
    "openai": {
        ".py": 5, ".js": 5, ".ts": 5, ".java": 5, ".tsx": 5, ".jsx": 5,
        ".cpp": 4, ".cs": 4, ".go": 4, ".rb": 4,
        ".rs": 3, ".swift": 3, ".kt": 3,
    },
    "google": {
        ".py": 5, ".js": 5, ".java": 5, ".go": 5, ".jsx": 5,
        ".ts": 4, ".cpp": 4, ".kt": 4, ".tsx": 4,
        ".rs": 3, ".swift": 3, ".php": 3,
    },
    # Local models vary; stay conservative
    "ollama": {
        ".py": 4, ".js": 4, ".cpp": 4, ".java": 4, ".ts": 4,
        ".go": 4, ".rs": 4, ".tsx": 4, ".jsx": 4,
    },
}

# (size upper bound in bytes, bonus); first matching tier applies
SIZE_TIERS = ((10_000, 20), (50_000, 10))
LARGE_FILE_BYTES = 80_000
LARGE_FILE_PENALTY = -10

ENTRY_POINT_MARKERS = ("index.", "main.")
SETUP_MARKERS = ("config.", "setup.")
TEST_MARKERS = ("test.", ".test.")


def merge_affinity(
    overrides: Mapping[str, Mapping[str, int]] | None,
) -> dict[str, dict[str, int]]:
    """Default affinity table with per-provider overrides (e.g. from config) applied on top."""
    table = {provider: dict(scores) for provider, scores in DEFAULT_LANGUAGE_AFFINITY.items()}
    for provider, scores in (overrides or {}).items():
        table.setdefault(provider, {}).update({ext.lower(): int(v) for ext, v in scores.items()})
    return table


def language_affinity(
    provider: str,
    extension: str,
    affinity: Mapping[str, Mapping[str, int]] | None = None,
) -> int:
    table = affinity if affinity is not None else DEFAULT_LANGUAGE_AFFINITY
    return table.get(provider, {}).get(extension.lower(), DEFAULT_AFFINITY)


def priority_score(
    task: AnalysisTask,
    backend: BackendId,
    affinity: Mapping[str, Mapping[str, int]] | None = None,
) -> int:
    score = BASE_PRIORITY
    score += AFFINITY_WEIGHT * language_affinity(backend.provider, task.extension, affinity)

    for limit, bonus in SIZE_TIERS:
        if task.size < limit:
            score += bonus
            break
    else:
        if task.size > LARGE_FILE_BYTES:
            score += LARGE_FILE_PENALTY

    name = PurePosixPath(task.relative_path).name.lower()
    if any(m in name for m in ENTRY_POINT_MARKERS):
        score += 15
    if any(m in name for m in SETUP_MARKERS):
        score += 10
    if any(m in name for m in TEST_MARKERS):
        score -= 5
    return score


def prioritize(
    tasks: list[AnalysisTask],
    backend: BackendId,
    affinity: Mapping[str, Mapping[str, int]] | None = None,
) -> list[AnalysisTask]:
    """Highest score first. sorted() is stable, so ties keep scan order."""
    return sorted(tasks, key=lambda t: priority_score(t, backend, affinity), reverse=True)
