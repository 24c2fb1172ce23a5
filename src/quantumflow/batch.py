"""
quantumflow/batch.py - Bounded task pool and deadline token

Group superpositions and pairwise correlations are independent pure tasks.
They run on a fixed-size thread pool and are reassembled by original index,
so output order never depends on completion order.

A Deadline is a cooperative cancellation token: long loops call
``check()`` at each unit of work and abort with DeadlineExceeded once the
budget is spent.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .exceptions import DeadlineExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class Deadline:
    """Wall-clock budget shared by a chain of computations.

    Example:
        deadline = Deadline(0.5)
        for pair in pairs:
            deadline.check("correlation matrix")
            ...
    """

    def __init__(self, seconds: float):
        if seconds <= 0:
            raise ValueError("Deadline budget must be positive")
        self.budget_s = float(seconds)
        self._expires_at = time.monotonic() + self.budget_s

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def check(self, stage: str = "computation") -> None:
        if self.expired():
            raise DeadlineExceeded(stage, self.budget_s)


def check_deadline(deadline: Deadline | None, stage: str) -> None:
    if deadline is not None:
        deadline.check(stage)


@dataclass
class TaskResult(Generic[R]):
    """Outcome of one pooled task."""
    index: int
    value: R | None
    elapsed_ms: float
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class OrderedTaskPool(Generic[T, R]):
    """Thread pool that returns results in submission order.

    A task that raises is recorded as a failed TaskResult and logged. A
    DeadlineExceeded from any task cancels the remaining work and propagates.

    Example:
        pool = OrderedTaskPool(process_group, max_workers=4)
        results = pool.run(groups)
        values = [r.value for r in results if r.ok]
    """

    def __init__(self, task_fn: Callable[[T], R], max_workers: int = 4):
        """Initialize the pool.

        Args:
            task_fn: Pure function applied to each item
            max_workers: Upper bound on concurrent workers
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.task_fn = task_fn
        self.max_workers = max_workers

        self._stats = {
            "runs": 0,
            "tasks_processed": 0,
            "errors": 0,
            "total_time_ms": 0.0,
        }

    def _run_one(self, index: int, item: T, deadline: Deadline | None) -> TaskResult[R]:
        check_deadline(deadline, f"task {index}")
        start = time.perf_counter()
        try:
            value = self.task_fn(item)
        except DeadlineExceeded:
            raise
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(f"Task {index} failed: {e}")
            return TaskResult(index=index, value=None, elapsed_ms=elapsed, error=str(e))
        elapsed = (time.perf_counter() - start) * 1000
        return TaskResult(index=index, value=value, elapsed_ms=elapsed)

    def run(
        self,
        items: Sequence[T],
        deadline: Deadline | None = None,
    ) -> list[TaskResult[R]]:
        """Apply the task function to every item.

        Returns:
            One TaskResult per item, ordered by item index
        """
        total_start = time.perf_counter()
        results: dict[int, TaskResult[R]] = {}

        if len(items) == 0:
            return []

        workers = min(self.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._run_one, i, item, deadline): i
                for i, item in enumerate(items)
            }
            try:
                for future in as_completed(futures):
                    idx = futures[future]
                    results[idx] = future.result()
            except DeadlineExceeded:
                for pending in futures:
                    pending.cancel()
                logger.warning("Deadline exceeded, cancelled remaining pool tasks")
                raise

        ordered = [results[i] for i in range(len(items))]

        self._stats["runs"] += 1
        self._stats["tasks_processed"] += len(items)
        self._stats["errors"] += sum(1 for r in ordered if not r.ok)
        self._stats["total_time_ms"] += (time.perf_counter() - total_start) * 1000

        return ordered

    @property
    def stats(self) -> dict[str, Any]:
        """Get processing statistics."""
        return dict(self._stats)
