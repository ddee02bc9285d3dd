"""Error types raised by the task tree core and its storage layer."""

from __future__ import annotations


class GanttError(Exception):
    """Base class for task tree errors."""

    pass


class InvalidInputError(GanttError, ValueError):
    """Request values the core refuses to act on (nothing is written)."""

    pass


class TaskNotFoundError(GanttError, LookupError):
    """An operation that needs an existing task was given an unknown id."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class StoreError(GanttError):
    """Storage backend failure (I/O, corrupt state file)."""

    pass


class ConfigError(GanttError):
    """Unreadable or malformed project configuration."""

    pass
