"""
Bounded-concurrency scheduler.

The calling thread is the single coordinator: it runs cache lookups, submits
misses to a thread pool, and processes every completion (observer calls,
on_complete, bookkeeping). Only backend work runs on worker threads, so
state touched by lookup and on_complete never needs a lock.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional

from churn.analysis.models import AnalysisTask, FileFailure, Phase, ProgressSnapshot, Suggestion, TaskOutcome
from churn.config import clamp_concurrency

logger = logging.getLogger(__name__)

# Completion times kept for the moving average
TIMING_WINDOW = 20
# File names shown in a snapshot's in-flight preview
IN_FLIGHT_PREVIEW = 5

Work = Callable[[AnalysisTask], TaskOutcome]
Lookup = Callable[[AnalysisTask], Optional[TaskOutcome]]
OnComplete = Callable[[AnalysisTask, TaskOutcome], None]
ProgressObserver = Callable[[ProgressSnapshot], None]


@dataclass
class SchedulerRun:
    """What a scheduler run produced, in completion order."""

    suggestions: list[Suggestion] = field(default_factory=list)
    outcomes: dict[str, TaskOutcome] = field(default_factory=dict)
    completed: int = 0
    total: int = 0
    cache_hits: int = 0
    failures: list[FileFailure] = field(default_factory=list)
    max_in_flight: int = 0
    elapsed: float = 0.0


def _timed(work: Work, task: AnalysisTask) -> tuple[TaskOutcome, float]:
    """Run work on a worker thread; exceptions become a failed outcome."""
    start = time.monotonic()
    try:
        outcome = work(task)
    except Exception as e:
        logger.warning("Analysis of %s failed: %s", task.relative_path, e)
        outcome = TaskOutcome(error=str(e) or type(e).__name__, error_kind=getattr(e, "kind", "error"))
    return outcome, time.monotonic() - start


class Scheduler:
    """Runs at most `limit` work items at once and reports progress after every state change."""

    def __init__(self, limit: int, on_progress: ProgressObserver | None = None) -> None:
        self.limit = clamp_concurrency(limit)
        self.on_progress = on_progress

    def run(
        self,
        tasks: list[AnalysisTask],
        work: Work,
        lookup: Lookup | None = None,
        on_complete: OnComplete | None = None,
    ) -> SchedulerRun:
        """
        Process tasks in the given order. Cache hits from lookup complete
        immediately without taking a slot. Returns once every task has
        completed; a failing task never aborts the run.
        """
        result = SchedulerRun(total=len(tasks))
        started = time.monotonic()
        timings: deque[float] = deque(maxlen=TIMING_WINDOW)
        in_flight: dict[Future, AnalysisTask] = {}
        avg: float | None = None

        def emit(current: str | None) -> None:
            if self.on_progress is None:
                return
            remaining = result.total - result.completed
            names = tuple(t.relative_path for t in list(in_flight.values())[:IN_FLIGHT_PREVIEW])
            snapshot = ProgressSnapshot(
                phase=Phase.ANALYZING,
                completed=result.completed,
                total=result.total,
                current_file=current,
                in_flight=names,
                in_flight_count=len(in_flight),
                avg_time_per_item=avg,
                eta=avg * remaining if avg is not None else None,
            )
            try:
                self.on_progress(snapshot)
            except Exception:
                logger.exception("Progress observer raised; ignoring")

        def finish(task: AnalysisTask, outcome: TaskOutcome) -> None:
            result.completed += 1
            result.outcomes[task.relative_path] = outcome
            if outcome.cached:
                result.cache_hits += 1
            if outcome.failed:
                result.failures.append(
                    FileFailure(
                        file=task.relative_path,
                        kind=outcome.error_kind or "error",
                        message=outcome.error or "",
                    )
                )
            if on_complete is not None:
                try:
                    on_complete(task, outcome)
                except Exception:
                    logger.exception("Completion handler failed for %s", task.relative_path)
            result.suggestions.extend(outcome.suggestions)
            emit(task.relative_path)

        def collect(done: set[Future]) -> None:
            nonlocal avg
            for future in done:
                task = in_flight.pop(future)
                outcome, elapsed = future.result()
                timings.append(elapsed)
                avg = sum(timings) / len(timings)
                finish(task, outcome)

        with ThreadPoolExecutor(max_workers=self.limit, thread_name_prefix="churn-worker") as pool:
            for task in tasks:
                cached = None
                if lookup is not None:
                    try:
                        cached = lookup(task)
                    except Exception as e:
                        logger.warning("Cache lookup for %s failed: %s", task.relative_path, e)
                if cached is not None:
                    cached.cached = True
                    finish(task, cached)
                    continue

                while len(in_flight) >= self.limit:
                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    collect(done)

                in_flight[pool.submit(_timed, work, task)] = task
                result.max_in_flight = max(result.max_in_flight, len(in_flight))
                emit(task.relative_path)

            while in_flight:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                collect(done)

        result.elapsed = time.monotonic() - started
        return result
