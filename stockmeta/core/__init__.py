"""Core batch orchestration components for stockmeta."""

from .completion import CompletionMonitor
from .gemini import (
    BatchRequest,
    BatchResult,
    GeminiConnector,
    GenerationError,
    GenerationTimeout,
    MissingCredentialError,
)
from .scheduler import BatchScheduler, RunSummary, SchedulerLimits
from .work_items import InvalidTransition, ItemStatus, WorkItem, WorkItemStore

__all__ = [
    "BatchRequest",
    "BatchResult",
    "BatchScheduler",
    "CompletionMonitor",
    "GeminiConnector",
    "GenerationError",
    "GenerationTimeout",
    "InvalidTransition",
    "ItemStatus",
    "MissingCredentialError",
    "RunSummary",
    "SchedulerLimits",
    "WorkItem",
    "WorkItemStore",
]
