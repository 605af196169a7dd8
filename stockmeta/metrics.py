"""Outcome and latency counters for dispatched batches."""

from __future__ import annotations

from dataclasses import dataclass
from statistics import mean
from typing import Dict, List, Optional

TIMEOUT = "timeout"
FAILURE = "failure"


@dataclass
class BatchOutcome:
    size: int
    completed: int
    errored: int
    elapsed: float
    failure: Optional[str] = None


class MetricsTracker:
    """Collects one outcome per batch call made by the scheduler.

    A batch that raised counts every item as errored and is classified as a
    timeout or another failure. A batch that returned counts items absent from
    the response as errored.
    """

    def __init__(self) -> None:
        self.outcomes: List[BatchOutcome] = []

    def record_batch(
        self,
        size: int,
        elapsed: float,
        *,
        completed: int = 0,
        errored: int = 0,
        failure: Optional[str] = None,
    ) -> None:
        self.outcomes.append(
            BatchOutcome(
                size=int(size),
                completed=int(completed),
                errored=int(errored),
                elapsed=float(elapsed),
                failure=failure,
            )
        )

    def reset(self) -> None:
        self.outcomes.clear()

    def summary(self) -> Dict[str, float]:
        latencies = [outcome.elapsed for outcome in self.outcomes]
        return {
            "batches": len(self.outcomes),
            "items_sent": sum(outcome.size for outcome in self.outcomes),
            "items_completed": sum(outcome.completed for outcome in self.outcomes),
            "items_errored": sum(outcome.errored for outcome in self.outcomes),
            "timeouts": sum(1 for outcome in self.outcomes if outcome.failure == TIMEOUT),
            "failures": sum(1 for outcome in self.outcomes if outcome.failure == FAILURE),
            "avg_latency": mean(latencies) if latencies else 0.0,
            "max_latency": max(latencies, default=0.0),
        }


__all__ = ["BatchOutcome", "FAILURE", "MetricsTracker", "TIMEOUT"]
