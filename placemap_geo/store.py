"""
Document store contract used by the spatial layer.

The backing store only answers point lookups, single-field lexicographic
ranges and small IN lists, each optionally narrowed by equality filters.
Everything spatial is built on top of these three shapes.

Backends must raise StoreUnavailable on any transport or driver failure;
an empty list always means "no matching documents".
"""

from __future__ import annotations

import abc
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from placemap_geo.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    key: str
    data: dict[str, Any] = field(default_factory=dict)


class DocumentStore(abc.ABC):
    """Async key/range/IN-queryable document store."""

    async def open(self) -> None:
        """Acquire backend resources. No-op by default."""

    async def close(self) -> None:
        """Release backend resources. No-op by default."""

    @abc.abstractmethod
    async def get_by_key(self, collection: str, key: str) -> Optional[Document]:
        ...

    @abc.abstractmethod
    async def range_query(
        self,
        collection: str,
        field: str,
        lower: str,
        upper: Optional[str],
        equals: Optional[dict[str, Any]] = None,
    ) -> list[Document]:
        """Documents with lower <= doc[field] < upper (upper=None: unbounded)."""

    @abc.abstractmethod
    async def in_query(
        self,
        collection: str,
        field: str,
        values: list[str],
        equals: Optional[dict[str, Any]] = None,
    ) -> list[Document]:
        ...

    @abc.abstractmethod
    async def put(self, collection: str, key: str, data: dict[str, Any]) -> None:
        """Create or fully replace a document."""

    @abc.abstractmethod
    async def update(self, collection: str, key: str, fields: dict[str, Any]) -> None:
        """Merge fields into an existing document."""

    @abc.abstractmethod
    async def scan(self, collection: str) -> list[Document]:
        """Every document in the collection (batch jobs only)."""

    @staticmethod
    def check_in_values(values: list[str]) -> None:
        limit = get_settings().store.in_query_max_values
        if len(values) > limit:
            raise ValueError(f"IN query accepts at most {limit} values, got {len(values)}")


def _matches(data: dict[str, Any], equals: Optional[dict[str, Any]]) -> bool:
    if not equals:
        return True
    return all(data.get(k) == v for k, v in equals.items())


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed store with the same query semantics as the Postgres backend.
    Used for local development and tests; holds no state across processes.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    async def get_by_key(self, collection: str, key: str) -> Optional[Document]:
        data = self._collection(collection).get(key)
        if data is None:
            return None
        return Document(key=key, data=copy.deepcopy(data))

    async def range_query(self, collection, field, lower, upper, equals=None):
        out: list[Document] = []
        for key, data in self._collection(collection).items():
            value = data.get(field)
            # Unindexed documents never satisfy a range
            if not isinstance(value, str):
                continue
            if value < lower or (upper is not None and value >= upper):
                continue
            if _matches(data, equals):
                out.append(Document(key=key, data=copy.deepcopy(data)))
        return out

    async def in_query(self, collection, field, values, equals=None):
        self.check_in_values(values)
        wanted = set(values)
        return [
            Document(key=key, data=copy.deepcopy(data))
            for key, data in self._collection(collection).items()
            if data.get(field) in wanted and _matches(data, equals)
        ]

    async def put(self, collection, key, data):
        self._collection(collection)[key] = copy.deepcopy(data)

    async def update(self, collection, key, fields):
        docs = self._collection(collection)
        if key not in docs:
            raise KeyError(f"{collection}/{key}")
        docs[key].update(copy.deepcopy(fields))

    async def scan(self, collection):
        return [
            Document(key=key, data=copy.deepcopy(data))
            for key, data in self._collection(collection).items()
        ]


def create_store() -> DocumentStore:
    """Factory: return the configured store backend."""
    backend = get_settings().store.backend
    if backend == "postgres":
        from placemap_geo.db import PostgresDocumentStore

        return PostgresDocumentStore()
    if backend != "memory":
        logger.warning("Unknown STORE_BACKEND %r, falling back to in-memory store", backend)
    return InMemoryDocumentStore()
