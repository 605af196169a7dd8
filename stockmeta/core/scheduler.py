"""Bounded-concurrency batch dispatch for pending work items."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Set, Tuple

from ..metrics import FAILURE, TIMEOUT
from .completion import CompletionMonitor
from .gemini import BatchRequest, BatchResult, GenerationTimeout
from .work_items import ItemStatus, WorkItem, WorkItemStore

FALLBACK_FAILURE = "Batch failed"


class GenerationClient(Protocol):
    model: str

    async def generate_batch(self, requests: Sequence[BatchRequest]) -> List[BatchResult]:
        ...


@dataclass(frozen=True)
class SchedulerLimits:
    batch_size: int = 5
    max_concurrent_batches: int = 4

    @property
    def capacity(self) -> int:
        return self.batch_size * self.max_concurrent_batches


@dataclass(frozen=True)
class RunSummary:
    total: int
    completed: int
    failed: int
    batches: int
    elapsed: float
    stopped: bool = False


class BatchScheduler:
    """Drives pending items to a terminal status in bounded batches.

    ``run`` sleeps on an event that the store sets on every mutation. Each
    wake performs one scheduling pass, so claiming capacity and freeing it
    both lead to another pass until the monitor reports the run finished.
    """

    def __init__(
        self,
        store: WorkItemStore,
        client: GenerationClient,
        *,
        limits: SchedulerLimits,
        logger,
        metrics=None,
    ) -> None:
        self.store = store
        self.client = client
        self.limits = limits
        self.logger = logger
        self.metrics = metrics
        self.monitor = CompletionMonitor(store, logger=logger)
        self.claimed: Set[str] = set()
        self._wake = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()
        self._active = False
        self._batches = 0
        self._stopped_items: Optional[Tuple[WorkItem, ...]] = None

    # ------------------------------------------------------------------
    async def run(self) -> RunSummary:
        start = time.monotonic()
        self._wake = asyncio.Event()
        self._active = bool(len(self.store))
        self._batches = 0
        self._stopped_items = None
        self.claimed.clear()
        self.monitor.reset()
        unsubscribe = self.store.subscribe(self._on_store_change)
        self._wake.set()
        try:
            while self._active:
                await self._wake.wait()
                self._wake.clear()
                if not self._active:
                    break
                self.dispatch_next()
                if self.monitor.check():
                    break
        finally:
            self._active = False
            unsubscribe()
        # stop() snapshots the items of the run it ended.
        stopped = self._stopped_items is not None
        items = self._stopped_items if stopped else self.store.items
        return RunSummary(
            total=len(items),
            completed=sum(1 for item in items if item.status is ItemStatus.COMPLETED),
            failed=sum(1 for item in items if item.status is ItemStatus.ERROR),
            batches=self._batches,
            elapsed=time.monotonic() - start,
            stopped=stopped,
        )

    def stop(self) -> None:
        if self._active:
            self._stopped_items = self.store.items
        self._active = False
        self._wake.set()

    # ------------------------------------------------------------------
    def dispatch_next(self) -> Optional[List[str]]:
        """Claim and dispatch the next batch if capacity allows.

        Selection and claim run without a suspension point in between, so a
        concurrent pass can never pick the same ids.
        """

        in_flight = self.store.count(ItemStatus.PROCESSING)
        if in_flight >= self.limits.capacity:
            return None
        candidates = [
            item
            for item in self.store.items
            if item.status is ItemStatus.PENDING and item.id not in self.claimed
        ]
        if not candidates:
            return None

        batch = candidates[: min(self.limits.batch_size, self.limits.capacity - in_flight)]
        ids = [item.id for item in batch]
        self.claimed.update(ids)
        self.store.mark_processing(ids)
        self._batches += 1
        self.logger.info(
            "Dispatching batch of %d item(s) (%d in flight).", len(ids), in_flight + len(ids)
        )

        requests = [BatchRequest(id=item.id, prompt=item.original_prompt) for item in batch]
        task = asyncio.create_task(
            self._execute(ids, requests, self.store.generation),
            name=f"batch-{ids[0]}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return ids

    async def _execute(self, ids: List[str], requests: List[BatchRequest], generation: int) -> None:
        start = time.perf_counter()
        try:
            results = await self.client.generate_batch(requests)
        except Exception as exc:
            elapsed = time.perf_counter() - start
            message = str(exc) or FALLBACK_FAILURE
            self.logger.warning("Batch of %d item(s) failed: %s", len(ids), message)
            kind = TIMEOUT if isinstance(exc, GenerationTimeout) else FAILURE
            if self._is_current(generation):
                self._record(len(ids), elapsed, errored=len(ids), failure=kind)
                self.store.mark_failed(ids, message)
        else:
            elapsed = time.perf_counter() - start
            by_id = {
                result.id: {
                    "title": result.title,
                    "keywords": result.keywords,
                    "category": result.category,
                }
                for result in results
            }
            missing = [item_id for item_id in ids if item_id not in by_id]
            if missing:
                self.logger.warning("%d item(s) missing from batch response.", len(missing))
            if self._is_current(generation):
                self._record(len(ids), elapsed, completed=len(ids) - len(missing), errored=len(missing))
                self.store.apply_results(ids, by_id)
        finally:
            self.claimed.difference_update(ids)
            self._wake.set()

    async def drain(self) -> None:
        """Wait for batch calls that are still outstanding."""

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    def _is_current(self, generation: int) -> bool:
        if generation == self.store.generation:
            return True
        self.logger.debug("Discarding results for superseded run %d.", generation)
        return False

    def _record(self, size: int, elapsed: float, **outcome) -> None:
        if self.metrics is not None:
            self.metrics.record_batch(size, elapsed, **outcome)

    def _on_store_change(self, _store: WorkItemStore) -> None:
        if self._active:
            self._wake.set()


__all__ = ["BatchScheduler", "GenerationClient", "RunSummary", "SchedulerLimits", "FALLBACK_FAILURE"]
