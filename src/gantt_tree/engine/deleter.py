from __future__ import annotations

import logging
from typing import Any

from ..schema import ROOT_PARENT, to_number
from ..storage.container import StoreContainer
from ..storage.interfaces import ID_FIELD
from .ordering import OrderingEngine

logger = logging.getLogger(__name__)


class CascadingDeleter:
    """Remove a task, its whole subtree, and every link/assignment pointing at them."""

    def __init__(self, store: StoreContainer, ordering: OrderingEngine) -> None:
        self.store = store
        self.ordering = ordering

    def subtree_post_order(self, task_id: str) -> list[str]:
        """Return *task_id* and its descendants, every child before its parent."""
        order: list[str] = []
        stack = [task_id]
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            order.append(current)
            for child in self.store.tasks.find({"parent": current}):
                stack.append(child[ID_FIELD])
        order.reverse()
        return order

    def _remove_one(self, task_id: str) -> None:
        self.store.links.remove({"$or": [{"source": task_id}, {"target": task_id}]}, multi=True)
        self.store.assignments.remove({"task": task_id}, multi=True)
        self.store.tasks.remove({ID_FIELD: task_id})

    def delete_task(self, task_id: str) -> list[str]:
        """Delete *task_id* with its subtree; returns the removed task ids.

        Unknown ids are a no-op (still clearing links/assignments that name them).
        """
        with self.store.transaction():
            root: dict[str, Any] | None = self.store.tasks.find_one({ID_FIELD: task_id})
            removed = self.subtree_post_order(task_id)
            try:
                for current in removed:
                    self._remove_one(current)
                if root is not None:
                    self.ordering.release_slot(
                        root.get("parent", ROOT_PARENT), int(to_number(root.get("position")))
                    )
            except Exception:
                logger.exception("Deleting task %s failed; rolling back", task_id)
                raise

        if root is None:
            return []
        logger.debug("Deleted task %s and %d descendants", task_id, len(removed) - 1)
        return removed
