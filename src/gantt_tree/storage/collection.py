"""Document collection with Mongo-style queries and optional YAML persistence.

A :class:`Collection` holds the records of one entity type as plain dicts
keyed by ``_id``.  Without a path it lives in memory only; with a path every
outermost operation reloads the YAML file under a :class:`filelock.FileLock`
and writes it back atomically when something changed.

Query language (subset of what the original datastore accepted)::

    {"parent": "abc"}                          # equality
    {"position": {"$gt": 2}, "_id": {"$ne": x}} # $gt $gte $lt $lte $ne $in $nin
    {"$or": [{"source": x}, {"target": x}]}    # $or / $and

Patch operators: ``$set``, ``$inc`` and ``$max`` (set if greater).
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import yaml
from filelock import FileLock

from ..errors import StoreError
from ..io_utils import _atomic_write_yaml, _load_data
from .interfaces import ID_FIELD, Filter, Patch, SortSpec, Store

logger = logging.getLogger(__name__)

STORE_VERSION = 1

_MISSING = object()


def new_id() -> str:
    return uuid.uuid4().hex[:16]


# ---------------------------------------------------------------------------
# Query evaluation
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _comparable(a: Any, b: Any) -> bool:
    if a is _MISSING or a is None or b is None:
        return False
    if _is_number(a) and _is_number(b):
        return True
    return isinstance(a, str) and isinstance(b, str)


_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "$gt": lambda a, b: _comparable(a, b) and a > b,
    "$gte": lambda a, b: _comparable(a, b) and a >= b,
    "$lt": lambda a, b: _comparable(a, b) and a < b,
    "$lte": lambda a, b: _comparable(a, b) and a <= b,
    "$ne": lambda a, b: a is _MISSING or a != b,
    "$in": lambda a, b: a is not _MISSING and a in b,
    "$nin": lambda a, b: a is _MISSING or a not in b,
}


def _is_operator_dict(cond: Any) -> bool:
    return isinstance(cond, dict) and bool(cond) and all(str(k).startswith("$") for k in cond)


def matches(doc: dict[str, Any], query: Optional[Filter]) -> bool:
    """Return True when *doc* satisfies *query*."""
    if not query:
        return True
    for key, cond in query.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in cond):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in cond):
                return False
        elif _is_operator_dict(cond):
            value = doc.get(key, _MISSING)
            for op, arg in cond.items():
                check = _COMPARISONS.get(op)
                if check is None:
                    raise ValueError(f"Unknown query operator: {op}")
                if not check(value, arg):
                    return False
        elif doc.get(key, _MISSING) != cond:
            return False
    return True


def _sort_key(value: Any) -> tuple[int, Any]:
    if value is None or value is _MISSING:
        return (0, 0)
    if _is_number(value) or isinstance(value, bool):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, str(value))


def sort_docs(docs: list[dict[str, Any]], sort: SortSpec) -> list[dict[str, Any]]:
    """Sort by several ``(field, direction)`` pairs; mixed types order None < numbers < strings."""
    out = list(docs)
    for field, direction in reversed(list(sort)):
        out.sort(key=lambda d: _sort_key(d.get(field, _MISSING)), reverse=direction < 0)
    return out


# ---------------------------------------------------------------------------
# Patch evaluation
# ---------------------------------------------------------------------------

def _as_number(value: Any) -> Optional[float]:
    if _is_number(value):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def apply_patch(doc: dict[str, Any], patch: Patch) -> None:
    for op, fields in patch.items():
        if op == "$set":
            for key, value in fields.items():
                if key != ID_FIELD:
                    doc[key] = value
        elif op == "$inc":
            for key, amount in fields.items():
                current = doc.get(key, 0)
                if not _is_number(current):
                    raise ValueError(f"Cannot $inc non-numeric field {key}={current!r}")
                doc[key] = current + amount
        elif op == "$max":
            for key, value in fields.items():
                current = _as_number(doc.get(key))
                if current is None or current < value:
                    doc[key] = value
        else:
            raise ValueError(f"Unknown update operator: {op}")


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

class Collection(Store):
    """Thread-safe document collection.

    Parameters
    ----------
    name:
        Collection name, also the top-level key of the YAML file.
    path:
        Optional YAML file backing the collection.  ``None`` keeps it in memory.
    lock_path:
        Lock file guarding *path* across processes (defaults to ``<path>.lock``).
    """

    def __init__(self, name: str, path: Optional[Path] = None, lock_path: Optional[Path] = None) -> None:
        self.name = name
        self._path = path
        self._file_lock: Optional[FileLock] = None
        if path is not None:
            self._file_lock = FileLock(str(lock_path or path.with_suffix(".lock")))
        self._thread_lock = threading.RLock()
        self._docs: list[dict[str, Any]] = []
        self._depth = 0
        self._dirty = False

    # -- internal helpers ---------------------------------------------------

    def _load(self) -> list[dict[str, Any]]:
        assert self._path is not None
        try:
            raw = _load_data(self._path, {})
        except (OSError, ValueError, yaml.YAMLError) as exc:
            raise StoreError(f"Failed to read {self._path.name}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StoreError(f"{self._path.name}: expected mapping, got {type(raw).__name__}")
        items = raw.get(self.name) or []
        if not isinstance(items, list):
            raise StoreError(f"{self._path.name}: '{self.name}' must be a list")
        return [dict(item) for item in items if isinstance(item, dict)]

    def _save(self) -> None:
        assert self._path is not None
        payload = {"version": STORE_VERSION, self.name: self._docs}
        try:
            _atomic_write_yaml(self._path, payload)
        except (OSError, yaml.YAMLError) as exc:
            raise StoreError(f"Failed to write {self._path.name}: {exc}") from exc

    @contextmanager
    def _session(self) -> Iterator[None]:
        """Hold the locks; the outermost session loads before and saves after."""
        with self._thread_lock:
            outer = self._depth == 0
            if outer and self._file_lock is not None:
                self._file_lock.acquire()
            try:
                if outer:
                    self._dirty = False
                    if self._path is not None:
                        self._docs = self._load()
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                if outer and self._dirty and self._path is not None:
                    self._save()
            finally:
                if outer:
                    self._dirty = False
                    if self._file_lock is not None:
                        self._file_lock.release()

    # -- public API ---------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[Collection]:
        """Group several operations; on exception the collection is restored.

        Usage::

            with tasks.transaction():
                tasks.update({"parent": p}, {"$inc": {"position": 1}}, multi=True)
                tasks.update({"_id": x}, {"$set": {"position": 0}})
        """
        with self._session():
            snapshot = copy.deepcopy(self._docs)
            dirty_before = self._dirty
            try:
                yield self
            except BaseException:
                self._docs = snapshot
                self._dirty = dirty_before
                logger.debug("Rolled back %s transaction", self.name)
                raise

    def find(
        self,
        query: Optional[Filter] = None,
        *,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        with self._session():
            out = [doc for doc in self._docs if matches(doc, query)]
            if sort:
                out = sort_docs(out, sort)
            if limit is not None:
                out = out[:limit]
            return copy.deepcopy(out)

    def find_one(self, query: Filter) -> Optional[dict[str, Any]]:
        found = self.find(query, limit=1)
        return found[0] if found else None

    def count(self, query: Optional[Filter] = None) -> int:
        with self._session():
            return sum(1 for doc in self._docs if matches(doc, query))

    def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        record = copy.deepcopy(doc)
        record.setdefault(ID_FIELD, new_id())
        with self._session():
            if any(d.get(ID_FIELD) == record[ID_FIELD] for d in self._docs):
                raise StoreError(f"{self.name}: duplicate {ID_FIELD} {record[ID_FIELD]!r}")
            self._docs.append(record)
            self._dirty = True
        return copy.deepcopy(record)

    def update(self, query: Filter, patch: Patch, *, multi: bool = False) -> int:
        with self._session():
            targets = [doc for doc in self._docs if matches(doc, query)]
            if not multi:
                targets = targets[:1]
            # Patch copies first so a bad operator leaves the records untouched.
            patched = []
            for doc in targets:
                new = copy.deepcopy(doc)
                apply_patch(new, patch)
                patched.append(new)
            for doc, new in zip(targets, patched):
                doc.clear()
                doc.update(new)
            if targets:
                self._dirty = True
            return len(targets)

    def remove(self, query: Filter, *, multi: bool = False) -> int:
        with self._session():
            removed = 0
            keep: list[dict[str, Any]] = []
            for doc in self._docs:
                if (multi or removed == 0) and matches(doc, query):
                    removed += 1
                    continue
                keep.append(doc)
            if removed:
                self._docs = keep
                self._dirty = True
            return removed
