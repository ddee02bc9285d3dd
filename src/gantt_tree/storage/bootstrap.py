from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from ..config import STATE_DIR_NAME
from ..errors import InvalidInputError, StoreError
from ..io_utils import _load_data
from ..schema import ROOT_PARENT, TASK_REFERENCE_FIELDS, normalize_ref, to_number
from .interfaces import ID_FIELD, Store

if TYPE_CHECKING:
    from .container import StoreContainer

logger = logging.getLogger(__name__)

SEED_SUFFIXES = (".json", ".yaml", ".yml")


def ensure_state_root(project_dir: Path) -> Path:
    state_root = project_dir / STATE_DIR_NAME
    state_root.mkdir(parents=True, exist_ok=True)
    return state_root


def _seed_file(seed_dir: Path, name: str) -> Path | None:
    for suffix in SEED_SUFFIXES:
        candidate = seed_dir / f"{name}{suffix}"
        if candidate.exists():
            return candidate
    return None


def _to_record(item: dict[str, Any]) -> dict[str, Any]:
    """Turn a client-shaped seed item (``id``) into a store record (``_id``)."""
    record = dict(item)
    if "id" in record:
        record[ID_FIELD] = str(record.pop("id"))
    for key in TASK_REFERENCE_FIELDS:
        if key in record:
            record[key] = normalize_ref(record[key])
    return record


def _seed_position(task: dict[str, Any]) -> tuple[int, float]:
    if "position" not in task:
        return (1, 0.0)
    try:
        return (0, float(to_number(task["position"])))
    except InvalidInputError:
        return (1, 0.0)


def reindex_siblings(tasks: Store) -> int:
    """Renumber every sibling group to ``0..n-1``, keeping the seeded order.

    Tasks without a usable ``position`` go after the positioned ones, in file
    order.  Returns the number of tasks rewritten.
    """
    groups: dict[Any, list[tuple[tuple[int, float], int, dict[str, Any]]]] = defaultdict(list)
    for order, task in enumerate(tasks.find()):
        groups[task.get("parent", ROOT_PARENT)].append((_seed_position(task), order, task))
    rewritten = 0
    for parent, members in groups.items():
        members.sort(key=lambda m: (m[0], m[1]))
        for position, (_, _, task) in enumerate(members):
            if task.get("position") == position and "parent" in task and task["parent"] == parent:
                continue
            tasks.update({ID_FIELD: task[ID_FIELD]}, {"$set": {"parent": parent, "position": position}})
            rewritten += 1
    return rewritten


def seed_collections(container: StoreContainer, seed_dir: Path) -> dict[str, int]:
    """Load ``<name>.json`` (or .yaml) seed files into collections that are still empty.

    Returns the number of records inserted per collection.
    """
    inserted: dict[str, int] = {}
    for name in ("tasks", "links", "assignments", "resources", "categories"):
        path = _seed_file(seed_dir, name)
        if path is None:
            continue
        collection = container.collection(name)
        if collection.count():
            continue
        try:
            items = _load_data(path, [])
        except (OSError, ValueError, yaml.YAMLError) as exc:
            raise StoreError(f"Failed to read seed file {path}: {exc}") from exc
        if isinstance(items, dict):
            items = items.get(name) or []
        if not isinstance(items, list):
            raise StoreError(f"Seed file {path} must hold a list of records")
        with collection.transaction():
            for item in items:
                if isinstance(item, dict):
                    collection.insert(_to_record(item))
            if name == "tasks" and reindex_siblings(collection):
                logger.warning("Renumbered seeded task positions in %s", path)
        inserted[name] = len(items)
        logger.info("Seeded %d %s from %s", len(items), name, path)
    return inserted
