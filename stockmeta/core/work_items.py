"""In-memory work item store with copy-on-write snapshots."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

MISSING_FROM_RESPONSE = "Item missing from batch response"
EDITABLE_FIELDS = ("title", "keywords", "category")


class ItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.ERROR)


class InvalidTransition(RuntimeError):
    """Raised when an item is asked to move to a status it cannot reach."""


_ALLOWED = {
    ItemStatus.PENDING: {ItemStatus.PROCESSING},
    ItemStatus.PROCESSING: {ItemStatus.COMPLETED, ItemStatus.ERROR},
    ItemStatus.COMPLETED: set(),
    ItemStatus.ERROR: set(),
}


@dataclass(frozen=True)
class WorkItem:
    id: str
    filename: str
    original_prompt: str
    title: str = ""
    keywords: str = ""
    category: str = ""
    status: ItemStatus = ItemStatus.PENDING
    error_message: Optional[str] = None

    def transition(self, status: ItemStatus, **changes: object) -> "WorkItem":
        if status not in _ALLOWED[self.status]:
            raise InvalidTransition(f"{self.id}: cannot move from {self.status.value} to {status.value}")
        return replace(self, status=status, **changes)


Listener = Callable[["WorkItemStore"], None]


class WorkItemStore:
    """Single source of truth for the items of the active run.

    Every mutation swaps in a new tuple, so a snapshot taken from ``items`` is
    never modified afterwards. Listeners are notified synchronously after each
    swap.
    """

    def __init__(self) -> None:
        self._items: Tuple[WorkItem, ...] = ()
        self._index: Dict[str, int] = {}
        self._listeners: List[Listener] = []
        self._ids = itertools.count()
        self._generation = 0

    # ------------------------------------------------------------------
    @property
    def items(self) -> Tuple[WorkItem, ...]:
        return self._items

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> Optional[WorkItem]:
        position = self._index.get(item_id)
        return None if position is None else self._items[position]

    def count(self, status: ItemStatus) -> int:
        return sum(1 for item in self._items if item.status is status)

    def pending_ids(self) -> List[str]:
        return [item.id for item in self._items if item.status is ItemStatus.PENDING]

    def all_terminal(self) -> bool:
        return all(item.status.is_terminal for item in self._items)

    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    def create_items(self, pairs: Iterable[Tuple[str, str]]) -> Tuple[WorkItem, ...]:
        """Replace the whole list with one pending item per (filename, prompt)."""

        items = tuple(
            WorkItem(id=f"item-{next(self._ids)}", filename=filename, original_prompt=prompt)
            for filename, prompt in pairs
        )
        self.reset(items)
        return items

    def reset(self, items: Tuple[WorkItem, ...] = ()) -> None:
        """Start a new run generation holding ``items``.

        Batch results tagged with an earlier generation are stale from here on.
        """

        self._generation += 1
        self._swap(tuple(items))

    def clear(self) -> None:
        self.reset()

    def mark_processing(self, ids: Sequence[str]) -> None:
        self._update(ids, lambda item: item.transition(ItemStatus.PROCESSING))

    def apply_results(self, ids: Sequence[str], results: Mapping[str, Mapping[str, str]]) -> None:
        def _merge(item: WorkItem) -> WorkItem:
            result = results.get(item.id)
            if result is None:
                return item.transition(ItemStatus.ERROR, error_message=MISSING_FROM_RESPONSE)
            return item.transition(
                ItemStatus.COMPLETED,
                title=result["title"],
                keywords=result["keywords"],
                category=result["category"],
                error_message=None,
            )

        self._update(ids, _merge)

    def mark_failed(self, ids: Sequence[str], message: str) -> None:
        self._update(ids, lambda item: item.transition(ItemStatus.ERROR, error_message=message))

    # ------------------------------------------------------------------
    def update_item(self, item_id: str, field: str, value: str) -> None:
        self.bulk_update([item_id], field, value)

    def bulk_update(self, ids: Sequence[str], field: str, value: str) -> None:
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Field '{field}' cannot be edited")
        self._update(ids, lambda item: replace(item, **{field: value}))

    # ------------------------------------------------------------------
    def _update(self, ids: Sequence[str], change: Callable[[WorkItem], WorkItem]) -> None:
        targets = {item_id for item_id in ids if item_id in self._index}
        if not targets:
            return
        items = tuple(change(item) if item.id in targets else item for item in self._items)
        self._swap(items)

    def _swap(self, items: Tuple[WorkItem, ...]) -> None:
        self._items = items
        self._index = {item.id: position for position, item in enumerate(items)}
        for listener in list(self._listeners):
            listener(self)


__all__ = [
    "EDITABLE_FIELDS",
    "InvalidTransition",
    "ItemStatus",
    "MISSING_FROM_RESPONSE",
    "WorkItem",
    "WorkItemStore",
]
