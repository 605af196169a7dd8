"""Run lifecycle for a metadata generation session."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, Tuple

from .categories import is_known_category
from .core import (
    BatchScheduler,
    GeminiConnector,
    RunSummary,
    SchedulerLimits,
    WorkItem,
    WorkItemStore,
)
from .core.scheduler import GenerationClient
from .export import CSV_FILENAME, write_csv
from .inputs import validate_inputs
from .metrics import MetricsTracker


class RunPhase(str, Enum):
    INPUT = "input"
    PROCESSING = "processing"
    REVIEW = "review"


class StockMetaRuntime:
    """Owns the store, scheduler and connector for one interactive session."""

    def __init__(
        self,
        config: Mapping[str, Any],
        logger,
        *,
        client: GenerationClient | None = None,
    ) -> None:
        self.config = config
        self.logger = logger
        self.store = WorkItemStore()
        self.metrics = MetricsTracker()
        self.client = client or GeminiConnector.from_config(config, logger)
        scheduler_cfg = config.get("scheduler", {})
        self.scheduler = BatchScheduler(
            self.store,
            self.client,
            limits=SchedulerLimits(
                batch_size=int(scheduler_cfg.get("batch_size", 5)),
                max_concurrent_batches=int(scheduler_cfg.get("max_concurrent_batches", 4)),
            ),
            logger=logger,
            metrics=self.metrics,
        )
        self.phase = RunPhase.INPUT

    # ------------------------------------------------------------------
    def start(self, prompts_text: str, filenames_text: str) -> Tuple[WorkItem, ...]:
        pairs = validate_inputs(prompts_text, filenames_text)
        self.metrics.reset()
        items = self.store.create_items(pairs)
        self.phase = RunPhase.PROCESSING
        self.logger.info("Starting run with %d item(s).", len(items))
        return items

    async def process(self) -> RunSummary:
        if self.phase is not RunPhase.PROCESSING:
            raise RuntimeError("No run is active; call start() first")
        summary = await self.scheduler.run()
        if summary.stopped:
            self.logger.info(
                "Run stopped with %d of %d item(s) finished.",
                summary.completed + summary.failed,
                summary.total,
            )
            return summary
        if self.phase is RunPhase.PROCESSING and self.scheduler.monitor.finished:
            self.phase = RunPhase.REVIEW
        self._log_summary(summary)
        return summary

    async def run(self, prompts_text: str, filenames_text: str) -> RunSummary:
        self.start(prompts_text, filenames_text)
        return await self.process()

    def start_over(self) -> None:
        self.scheduler.stop()
        self.store.reset()
        self.phase = RunPhase.INPUT
        self.logger.info("Run discarded; waiting for new input.")

    # ------------------------------------------------------------------
    def update_item(self, item_id: str, field: str, value: str) -> None:
        self._check_category(field, value)
        self.store.update_item(item_id, field, value)

    def bulk_update(self, ids: Sequence[str], field: str, value: str) -> None:
        self._check_category(field, value)
        self.store.bulk_update(ids, field, value)
        self.logger.debug("Set %s on %d item(s).", field, len(ids))

    @staticmethod
    def _check_category(field: str, value: str) -> None:
        if field == "category" and not is_known_category(value):
            raise ValueError(f"Unknown Adobe Stock category: {value!r}")

    def progress(self) -> float:
        return self.scheduler.monitor.progress()

    def export(self, directory: str | Path | None = None) -> Path:
        export_cfg = self.config.get("export", {})
        target = directory if directory is not None else export_cfg.get("directory", ".")
        filename = str(export_cfg.get("filename") or CSV_FILENAME)
        path = write_csv(self.store.items, target, filename=filename)
        self.logger.info("Exported %d row(s) to %s", len(self.store), path)
        return path

    async def aclose(self) -> None:
        await self.scheduler.drain()
        close = getattr(self.client, "aclose", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    def _log_summary(self, summary: RunSummary) -> None:
        self.logger.info("=== RUN SUMMARY ===")
        self.logger.info(
            "Items: %d completed, %d failed, %d total in %d batch(es) over %.2fs",
            summary.completed,
            summary.failed,
            summary.total,
            summary.batches,
            summary.elapsed,
        )
        stats: Dict[str, Any] = self.metrics.summary()
        self.logger.info(
            "Batches: %d sent, %d timed out, %d failed otherwise; latency avg=%.2fs max=%.2fs",
            stats["batches"],
            stats["timeouts"],
            stats["failures"],
            stats["avg_latency"],
            stats["max_latency"],
        )
        self.logger.info("===================")


__all__ = ["RunPhase", "StockMetaRuntime"]
