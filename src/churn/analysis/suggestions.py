"""Strict parsing of backend responses into Suggestion objects (fails closed)."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from churn.analysis.models import Category, CodeChange, Severity, Suggestion

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)

MAX_TITLE_CHARS = 200


def extract_json_text(response: str) -> str:
    """Strip a surrounding markdown code fence if present."""
    text = response.strip()
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text


def _required_str(item: dict[str, Any], key: str) -> str | None:
    value = item.get(key)
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _optional_line(value: Any) -> int | None:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return None


def _parse_code(value: Any) -> CodeChange | None:
    if not isinstance(value, dict):
        return None
    before = value.get("before")
    after = value.get("after")
    if not isinstance(before, str) or not isinstance(after, str):
        return None
    return CodeChange(
        before=before,
        after=after,
        start_line=_optional_line(value.get("startLine", value.get("start_line"))),
        end_line=_optional_line(value.get("endLine", value.get("end_line"))),
    )


def parse_suggestion(item: Any, file: str) -> Suggestion | None:
    """Validate one suggestion object; None if any required field is missing or invalid."""
    if not isinstance(item, dict):
        return None
    try:
        category = Category(str(item.get("category", "")).strip().lower())
        severity = Severity(str(item.get("severity", "")).strip().lower())
    except ValueError:
        return None
    title = _required_str(item, "title")
    description = _required_str(item, "description")
    # Backends are prompted with "suggestion"; accept "recommendation" too
    recommendation = _required_str(item, "suggestion") or _required_str(item, "recommendation")
    if title is None or description is None or recommendation is None:
        return None
    return Suggestion(
        file=file,
        category=category,
        severity=severity,
        title=title[:MAX_TITLE_CHARS],
        description=description,
        recommendation=recommendation,
        code=_parse_code(item.get("code")),
    )


def parse_suggestions(response: str, file: str) -> list[Suggestion] | None:
    """
    Parse a backend response of the form {"suggestions": [...]}.

    Returns None when the payload is malformed as a whole (not JSON, wrong
    shape). Individual invalid suggestions are dropped. Never raises.
    """
    try:
        data = json.loads(extract_json_text(response))
    except (json.JSONDecodeError, TypeError) as e:
        logger.debug("Malformed response for %s: %s", file, e)
        return None
    if not isinstance(data, dict):
        return None
    items = data.get("suggestions")
    if not isinstance(items, list):
        return None
    suggestions: list[Suggestion] = []
    for item in items:
        parsed = parse_suggestion(item, file)
        if parsed is None:
            logger.debug("Dropping invalid suggestion for %s: %r", file, item)
            continue
        suggestions.append(parsed)
    return suggestions
