"""Build a :class:`GanttService` for a project directory from its config."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config import get_storage_config, load_config
from .engine.service import GanttService
from .errors import ConfigError
from .storage.container import StoreContainer


def open_project(project_dir: Optional[Path] = None, *, backend: Optional[str] = None) -> GanttService:
    """Open the task tree of *project_dir* (default: current directory).

    Args:
        project_dir: Project root holding the optional `.gantt/` state directory.
        backend: Force `memory` or `file` storage instead of the configured one.

    Returns:
        A service bound to freshly opened (and, if configured, seeded) collections.
    """
    project_dir = (project_dir or Path.cwd()).resolve()
    config, err = load_config(project_dir)
    if err:
        raise ConfigError(f"Invalid config: {err}")
    storage = get_storage_config(config, project_dir)
    container = StoreContainer(
        project_dir,
        backend=backend or storage["backend"],
        seed_dir=storage["seed_dir"],
    )
    return GanttService(container)
