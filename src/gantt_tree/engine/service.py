"""Task tree service: the operations exposed to the HTTP layer and the CLI.

Wraps the ordering, split and delete engines with input sanitizing, id
translation (``_id`` inside the store, ``id`` outside) and a per-tree lock
that serializes every mutating call.  Each method returns only after its
writes are committed, so a read issued afterwards sees them.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

from ..schema import (
    ASSIGNMENT_FIELDS,
    LINK_FIELDS,
    TASK_DEFAULTS,
    TASK_FIELDS,
    FieldSchema,
    sanitize,
)
from ..storage.collection import Collection
from ..storage.container import StoreContainer
from ..storage.interfaces import ID_FIELD
from .deleter import CascadingDeleter
from .ordering import SAME_PARENT, OrderingEngine, validate_initial_mode
from .split import SplitEngine

logger = logging.getLogger(__name__)

TASK_SORT = [("position", 1), ("parent", 1)]

_MISSING = object()


def fix_id(doc: dict[str, Any]) -> dict[str, Any]:
    """Expose the store key ``_id`` as ``id``."""
    out = dict(doc)
    out["id"] = out.pop(ID_FIELD, None)
    return out


class GanttService:
    """Manage the task tree of one project.

    Parameters
    ----------
    store:
        The collections holding tasks, links, assignments, resources and categories.
    """

    def __init__(self, store: StoreContainer) -> None:
        self.store = store
        self.ordering = OrderingEngine(store.tasks)
        self.splitter = SplitEngine(store.tasks, self.ordering)
        self.deleter = CascadingDeleter(store, self.ordering)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def list_tasks(self) -> list[dict[str, Any]]:
        return [fix_id(t) for t in self.store.tasks.find({}, sort=TASK_SORT)]

    def get_task(self, task_id: str) -> Optional[dict[str, Any]]:
        task = self.store.tasks.find_one({ID_FIELD: task_id})
        return fix_id(task) if task is not None else None

    def create_task(self, body: Mapping[str, Any]) -> str:
        """Insert a task first or last among its siblings (``mode`` in *body*)."""
        mode = validate_initial_mode(body.get("mode"))
        fields = sanitize(dict(TASK_DEFAULTS), body, TASK_FIELDS)
        fields.pop("position", None)
        with self._lock:
            with self.store.tasks.transaction():
                self.ordering.ensure_parent_exists(fields["parent"])
                task = self.store.tasks.insert(fields)
                task_id = task[ID_FIELD]
                self.ordering.set_initial_position(task_id, mode, fields["parent"])
        logger.info("Created task %s (%s) under %s", task_id, mode, fields["parent"])
        return task_id

    def update_task(self, task_id: str, body: Mapping[str, Any]) -> None:
        """Apply field updates; a new ``parent`` moves the task to the end of that group.

        ``position`` is ignored here, use :meth:`move_task`.  Unknown ids are a no-op.
        """
        fields = sanitize({}, body, TASK_FIELDS)
        fields.pop("position", None)
        new_parent = fields.pop("parent", _MISSING)
        with self._lock:
            with self.store.tasks.transaction():
                task = self.store.tasks.find_one({ID_FIELD: task_id})
                if task is None:
                    return
                if fields:
                    self.store.tasks.update({ID_FIELD: task_id}, {"$set": fields})
                if new_parent is not _MISSING and new_parent != task.get("parent"):
                    self.ordering.move(task_id, "last", parent=new_parent)

    def move_task(
        self,
        task_id: str,
        mode: Optional[str],
        target: Optional[str] = None,
        parent: Any = SAME_PARENT,
    ) -> str:
        with self._lock:
            self.ordering.move(task_id, mode, target=target, parent=parent)
        return task_id

    def split_task(self, task_id: str, body: Mapping[str, Any]) -> dict[str, Any]:
        with self._lock:
            result = self.splitter.split(task_id, body)
        logger.info("Split task %s into %s", task_id, result.to_dict())
        return result.to_dict()

    def delete_task(self, task_id: str) -> None:
        with self._lock:
            removed = self.deleter.delete_task(task_id)
        if removed:
            logger.info("Deleted task %s (%d records)", task_id, len(removed))

    # ------------------------------------------------------------------
    # Links, assignments, resources, categories
    # ------------------------------------------------------------------

    def _list(self, collection: Collection) -> list[dict[str, Any]]:
        return [fix_id(d) for d in collection.find({})]

    def _create(self, collection: Collection, body: Mapping[str, Any], schema: FieldSchema) -> str:
        fields = sanitize({}, body, schema)
        with self._lock:
            return collection.insert(fields)[ID_FIELD]

    def _update(self, collection: Collection, record_id: str, body: Mapping[str, Any], schema: FieldSchema) -> None:
        fields = sanitize({}, body, schema)
        if not fields:
            return
        with self._lock:
            collection.update({ID_FIELD: record_id}, {"$set": fields})

    def _delete(self, collection: Collection, record_id: str) -> None:
        with self._lock:
            collection.remove({ID_FIELD: record_id})

    def list_links(self) -> list[dict[str, Any]]:
        return self._list(self.store.links)

    def create_link(self, body: Mapping[str, Any]) -> str:
        return self._create(self.store.links, body, LINK_FIELDS)

    def update_link(self, link_id: str, body: Mapping[str, Any]) -> None:
        self._update(self.store.links, link_id, body, LINK_FIELDS)

    def delete_link(self, link_id: str) -> None:
        self._delete(self.store.links, link_id)

    def list_assignments(self) -> list[dict[str, Any]]:
        return self._list(self.store.assignments)

    def create_assignment(self, body: Mapping[str, Any]) -> str:
        return self._create(self.store.assignments, body, ASSIGNMENT_FIELDS)

    def update_assignment(self, assignment_id: str, body: Mapping[str, Any]) -> None:
        self._update(self.store.assignments, assignment_id, body, ASSIGNMENT_FIELDS)

    def delete_assignment(self, assignment_id: str) -> None:
        self._delete(self.store.assignments, assignment_id)

    def list_resources(self) -> list[dict[str, Any]]:
        return self._list(self.store.resources)

    def list_categories(self) -> list[dict[str, Any]]:
        return self._list(self.store.categories)
