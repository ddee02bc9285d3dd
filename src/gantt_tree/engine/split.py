"""Split engine: turn a task into a container with the requested child.

A leaf keeps its own content visible by first getting a child cloned from
itself; the caller's new task is then added after it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..errors import TaskNotFoundError
from ..schema import TASK_DEFAULTS, TASK_FIELDS, sanitize
from ..storage.interfaces import ID_FIELD, Store
from .ordering import OrderingEngine

logger = logging.getLogger(__name__)

SPLIT_TYPE = "split"

# Attributes copied from the split task onto its synthetic first child.
CLONED_FIELDS = ("text", "start_date", "duration", "progress", "opened", "details")


@dataclass
class SplitResult:
    id: str
    sibling: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id}
        if self.sibling is not None:
            data["sibling"] = self.sibling
        return data


class SplitEngine:
    def __init__(self, tasks: Store, ordering: OrderingEngine) -> None:
        self.tasks = tasks
        self.ordering = ordering

    def _clone_child(self, task: dict[str, Any]) -> dict[str, Any]:
        child = {key: task[key] for key in CLONED_FIELDS if key in task}
        if child.get("duration") is None:
            child["duration"] = 1
        if child.get("progress") is None:
            child["progress"] = 0
        child["type"] = "task"
        return child

    def _append_child(self, parent_id: str, doc: dict[str, Any]) -> str:
        doc["parent"] = parent_id
        doc["position"] = self.ordering.next_position(parent_id)
        return self.tasks.insert(doc)[ID_FIELD]

    def split(self, task_id: str, body: Mapping[str, Any]) -> SplitResult:
        """Split *task_id* and add a child built from *body*."""
        fields = sanitize(dict(TASK_DEFAULTS), body, TASK_FIELDS)
        with self.tasks.transaction():
            task = self.tasks.find_one({ID_FIELD: task_id})
            if task is None:
                raise TaskNotFoundError(task_id)
            self.tasks.update(
                {ID_FIELD: task_id},
                {"$set": {"type": SPLIT_TYPE}, "$max": {"duration": 1, "progress": 0}},
            )

            sibling: Optional[str] = None
            if not self.tasks.count({"parent": task_id}):
                sibling = self._append_child(task_id, self._clone_child(task))

            new_id = self._append_child(task_id, fields)

        logger.debug("Split task %s: new child %s, sibling %s", task_id, new_id, sibling)
        return SplitResult(id=new_id, sibling=sibling)
