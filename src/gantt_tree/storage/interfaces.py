from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Optional, Sequence

ID_FIELD = "_id"

Filter = dict[str, Any]
Patch = dict[str, dict[str, Any]]
SortSpec = Sequence[tuple[str, int]]


class Store(ABC):
    """Document store for one entity type.

    Records are plain dicts keyed by ``_id``.  Filters and patches use the
    Mongo-style operators documented on :class:`~.collection.Collection`.
    """

    @abstractmethod
    def find(
        self,
        query: Optional[Filter] = None,
        *,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def find_one(self, query: Filter) -> Optional[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def update(self, query: Filter, patch: Patch, *, multi: bool = False) -> int:
        raise NotImplementedError

    @abstractmethod
    def remove(self, query: Filter, *, multi: bool = False) -> int:
        raise NotImplementedError

    @abstractmethod
    def count(self, query: Optional[Filter] = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Store]:
        raise NotImplementedError
