"""Provide the public `gantt_tree` package exports."""

from __future__ import annotations

__version__ = "0.1.0"

from .engine.service import GanttService
from .project import open_project
from .storage.container import StoreContainer

__all__ = ["GanttService", "StoreContainer", "__version__", "open_project"]
