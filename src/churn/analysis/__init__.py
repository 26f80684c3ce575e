"""Analysis pipeline: scanning, context detection, diffs, prioritization, scheduling, orchestration."""
