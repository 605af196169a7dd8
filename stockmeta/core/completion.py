"""Detects when every item of the active run has reached a terminal status."""

from __future__ import annotations

from .work_items import WorkItemStore


class CompletionMonitor:
    def __init__(self, store: WorkItemStore, *, logger) -> None:
        self.store = store
        self.logger = logger
        self.finished = False

    def check(self) -> bool:
        if not len(self.store) or not self.store.all_terminal():
            return False
        if not self.finished:
            self.logger.info("All %d item(s) reached a terminal status.", len(self.store))
            self.finished = True
        return True

    def progress(self) -> float:
        total = len(self.store)
        if not total:
            return 0.0
        done = sum(1 for item in self.store.items if item.status.is_terminal)
        return done / total * 100

    def reset(self) -> None:
        self.finished = False


__all__ = ["CompletionMonitor"]
