from __future__ import annotations

from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .bootstrap import ensure_state_root, seed_collections
from .collection import Collection

COLLECTIONS = ("tasks", "links", "assignments", "resources", "categories")


class StoreContainer:
    """All collections of one project tree.

    With ``project_dir`` set and ``backend="file"`` every collection is a YAML
    file under ``<project_dir>/.gantt/``; otherwise everything lives in memory.
    """

    def __init__(
        self,
        project_dir: Optional[Path] = None,
        *,
        backend: str = "memory",
        seed_dir: Optional[Path] = None,
    ) -> None:
        self.project_dir = project_dir.resolve() if project_dir is not None else None
        self.state_root: Optional[Path] = None
        if backend == "file":
            if self.project_dir is None:
                raise ValueError("The file backend needs a project directory")
            self.state_root = ensure_state_root(self.project_dir)

        def _collection(name: str) -> Collection:
            if self.state_root is None:
                return Collection(name)
            return Collection(name, self.state_root / f"{name}.yaml", self.state_root / f"{name}.lock")

        self.tasks = _collection("tasks")
        self.links = _collection("links")
        self.assignments = _collection("assignments")
        self.resources = _collection("resources")
        self.categories = _collection("categories")

        if seed_dir is not None:
            seed_collections(self, seed_dir)

    @property
    def project_id(self) -> str:
        return self.project_dir.name if self.project_dir is not None else "memory"

    def collection(self, name: str) -> Collection:
        if name not in COLLECTIONS:
            raise KeyError(name)
        return getattr(self, name)

    @contextmanager
    def transaction(self) -> Iterator[StoreContainer]:
        """Open a transaction on every collection; all roll back together."""
        with ExitStack() as stack:
            for name in COLLECTIONS:
                stack.enter_context(self.collection(name).transaction())
            yield self
