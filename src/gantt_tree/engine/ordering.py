"""Ordering engine: the only writer of task ``position`` values.

Within every sibling group (tasks sharing a ``parent``) positions form the
contiguous range ``0..n-1``.  Each public method below leaves that range
intact once it returns.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..errors import InvalidInputError
from ..schema import ROOT_PARENT, normalize_ref, to_number
from ..storage.interfaces import ID_FIELD, Store

logger = logging.getLogger(__name__)

SAME_PARENT = -1

INITIAL_MODES = ("first", "last")
MOVE_MODES = ("before", "after", "first", "last")


def validate_initial_mode(mode: Optional[str]) -> str:
    """Normalize a creation mode; empty means ``first``."""
    if not mode:
        return "first"
    if mode not in INITIAL_MODES:
        raise InvalidInputError(f"Unsupported position mode: {mode!r}")
    return mode


def validate_move_mode(mode: Optional[str]) -> str:
    if mode not in MOVE_MODES:
        raise InvalidInputError(f"Unsupported position mode: {mode!r}")
    return mode


def _position(task: dict[str, Any]) -> int:
    return int(to_number(task.get("position")))


def _is_same_parent_sentinel(parent: Any) -> bool:
    return parent is None or str(parent) == str(SAME_PARENT)


class OrderingEngine:
    """Compute and repair ``position`` values inside sibling groups."""

    def __init__(self, tasks: Store) -> None:
        self.tasks = tasks

    def next_position(self, parent: Any, exclude: Optional[str] = None) -> int:
        """Return the slot after the last child of *parent* (``0`` for no children)."""
        query: dict[str, Any] = {"parent": parent}
        if exclude is not None:
            query[ID_FIELD] = {"$ne": exclude}
        last = self.tasks.find(query, sort=[("position", -1)], limit=1)
        if not last:
            return 0
        return _position(last[0]) + 1

    def set_initial_position(self, task_id: str, mode: Optional[str], parent: Any) -> int:
        """Place a freshly inserted task first or last among its siblings."""
        mode = validate_initial_mode(mode)
        with self.tasks.transaction():
            if mode == "last":
                position = self.next_position(parent, exclude=task_id)
            else:
                self.tasks.update(
                    {"parent": parent, ID_FIELD: {"$ne": task_id}},
                    {"$inc": {"position": 1}},
                    multi=True,
                )
                position = 0
            self.tasks.update({ID_FIELD: task_id}, {"$set": {"position": position}})
        return position

    def release_slot(self, parent: Any, position: int, exclude: Optional[str] = None) -> int:
        """Close the gap left at *position* under *parent*."""
        query: dict[str, Any] = {"parent": parent, "position": {"$gt": position}}
        if exclude is not None:
            query[ID_FIELD] = {"$ne": exclude}
        return self.tasks.update(query, {"$inc": {"position": -1}}, multi=True)

    def ensure_parent_exists(self, parent: Any) -> None:
        """Reject a ``parent`` that is neither the root nor an existing task."""
        if parent != ROOT_PARENT and self.tasks.find_one({ID_FIELD: parent}) is None:
            raise InvalidInputError(f"Unknown parent task: {parent}")

    def _ensure_not_descendant(self, task_id: str, parent: Any) -> None:
        seen: set[Any] = set()
        cur = parent
        while cur != ROOT_PARENT and cur not in seen:
            if cur == task_id:
                raise InvalidInputError(f"Cannot move task {task_id} under its own subtree")
            seen.add(cur)
            node = self.tasks.find_one({ID_FIELD: cur})
            if node is None:
                return
            cur = node.get("parent", ROOT_PARENT)

    def move(
        self,
        task_id: str,
        mode: Optional[str],
        target: Optional[str] = None,
        parent: Any = SAME_PARENT,
    ) -> Optional[int]:
        """Relocate *task_id* and re-index both sibling groups.

        Returns the task's final position, or ``None`` when the task does not
        exist (nothing is written in that case).
        """
        mode = validate_move_mode(mode)
        with self.tasks.transaction():
            task = self.tasks.find_one({ID_FIELD: task_id})
            if task is None:
                return None
            cur_parent = task.get("parent", ROOT_PARENT)
            cur_pos = _position(task)

            if mode in ("before", "after"):
                if target is None or target == "":
                    raise InvalidInputError(f"Mode {mode!r} needs a target task")
                target = str(target)
                if target == task_id:
                    return cur_pos
                anchor = self.tasks.find_one({ID_FIELD: target})
                if anchor is None:
                    raise InvalidInputError(f"Unknown move target: {target}")
                dest_parent = anchor.get("parent", ROOT_PARENT)
                dest_pos = _position(anchor) + (1 if mode == "after" else 0)
            else:
                dest_parent = cur_parent if _is_same_parent_sentinel(parent) else normalize_ref(parent)
                if dest_parent != cur_parent:
                    self.ensure_parent_exists(dest_parent)
                dest_pos = 0 if mode == "first" else self.next_position(dest_parent)

            self._ensure_not_descendant(task_id, dest_parent)

            same_parent = dest_parent == cur_parent
            if same_parent and (mode == "last" or cur_pos < dest_pos):
                dest_pos -= 1
            if same_parent and dest_pos == cur_pos:
                return cur_pos

            try:
                # close the gap, open a gap, then write; each step relies on the previous one
                self.release_slot(cur_parent, cur_pos, exclude=task_id)
                self.tasks.update(
                    {"parent": dest_parent, "position": {"$gte": dest_pos}, ID_FIELD: {"$ne": task_id}},
                    {"$inc": {"position": 1}},
                    multi=True,
                )
                self.tasks.update(
                    {ID_FIELD: task_id},
                    {"$set": {"parent": dest_parent, "position": dest_pos}},
                )
            except Exception:
                logger.exception(
                    "Moving task %s from %s/%s to %s/%s failed; rolling back",
                    task_id, cur_parent, cur_pos, dest_parent, dest_pos,
                )
                raise

        logger.debug("Moved task %s from %s/%s to %s/%s", task_id, cur_parent, cur_pos, dest_parent, dest_pos)
        return dest_pos
