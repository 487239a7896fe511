"""Document store abstraction and its Redis-backed implementation.

Documents are JSON objects addressed by ``(collection, id)``. Each document
carries its own ``id`` field so that queries can filter on it. Multi-document
writes go through a ``WriteBatch`` and are applied atomically.
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

import redis.asyncio as redis
from pydantic import BaseModel

logger = logging.getLogger(__name__)

FilterOp = Literal["==", "!=", "<", "<=", ">", ">=", "in"]


class DocumentNotFoundError(LookupError):
    """Raised when updating a document that does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"Document {collection}/{doc_id} does not exist")
        self.collection = collection
        self.doc_id = doc_id


@dataclass(frozen=True)
class Filter:
    """Single predicate of a document query."""

    field: str
    op: FilterOp
    value: Any

    def matches(self, document: dict[str, Any]) -> bool:
        actual = _lookup(document, self.field)
        if self.op == "in":
            candidates = [_plain(v) for v in self.value]
            return _plain(actual) in candidates

        expected = _plain(self.value)
        if isinstance(expected, datetime):
            actual = _as_datetime(actual)
        if self.op == "==":
            return actual == expected
        if self.op == "!=":
            return actual != expected
        if actual is None:
            return False
        try:
            if self.op == "<":
                return actual < expected
            if self.op == "<=":
                return actual <= expected
            if self.op == ">":
                return actual > expected
            if self.op == ">=":
                return actual >= expected
        except TypeError:
            return False
        raise ValueError(f"Unsupported filter operator: {self.op}")


def where(field: str, op: FilterOp, value: Any) -> Filter:
    return Filter(field, op, value)


class WriteBatch:
    """Collects writes to be committed together."""

    def __init__(self) -> None:
        self.operations: list[tuple[str, str, str, dict[str, Any] | None]] = []

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> "WriteBatch":
        self.operations.append(("set", collection, doc_id, dict(data)))
        return self

    def update(
        self, collection: str, doc_id: str, fields: dict[str, Any]
    ) -> "WriteBatch":
        self.operations.append(("update", collection, doc_id, dict(fields)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self.operations.append(("delete", collection, doc_id, None))
        return self

    def __len__(self) -> int:
        return len(self.operations)


class DocumentStore(ABC):
    """Key-value/collection store consumed by the sync engine."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return the document or ``None``."""

    @abstractmethod
    async def get_many(
        self, collection: str, doc_ids: Sequence[str]
    ) -> list[dict[str, Any]]:
        """Return the existing documents among ``doc_ids``, in request order."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return all documents matching every filter."""

    @abstractmethod
    async def commit(self, batch: WriteBatch) -> None:
        """Apply every write of the batch, or none of them."""

    def batch(self) -> WriteBatch:
        return WriteBatch()

    async def add(
        self, collection: str, data: dict[str, Any], doc_id: str | None = None
    ) -> str:
        new_id = doc_id or uuid.uuid4().hex
        await self.commit(WriteBatch().set(collection, new_id, data))
        return new_id

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        await self.commit(WriteBatch().set(collection, doc_id, data))

    async def update(
        self, collection: str, doc_id: str, fields: dict[str, Any]
    ) -> None:
        await self.commit(WriteBatch().update(collection, doc_id, fields))

    async def delete(self, collection: str, doc_id: str) -> None:
        await self.commit(WriteBatch().delete(collection, doc_id))


class RedisDocumentStore(DocumentStore):
    """Stores each document as a JSON string plus one id set per collection."""

    def __init__(self, client: redis.Redis, prefix: str = "") -> None:
        self._client = client
        self._prefix = prefix

    def _doc_key(self, collection: str, doc_id: str) -> str:
        return f"{self._prefix}{collection}:{doc_id}"

    def _index_key(self, collection: str) -> str:
        return f"{self._prefix}{collection}:__ids__"

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        raw = await self._client.get(self._doc_key(collection, doc_id))
        if not raw:
            return None
        return json.loads(raw)

    async def get_many(
        self, collection: str, doc_ids: Sequence[str]
    ) -> list[dict[str, Any]]:
        if not doc_ids:
            return []
        keys = [self._doc_key(collection, doc_id) for doc_id in doc_ids]
        raw_docs = await self._client.mget(keys)
        return [json.loads(raw) for raw in raw_docs if raw]

    async def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ids = sorted(_text(i) for i in await self._client.smembers(self._index_key(collection)))
        documents = await self.get_many(collection, ids)

        predicates = list(filters)
        matched = [doc for doc in documents if all(p.matches(doc) for p in predicates)]

        if order_by is not None:
            present = [doc for doc in matched if _lookup(doc, order_by) is not None]
            missing = [doc for doc in matched if _lookup(doc, order_by) is None]
            present.sort(
                key=lambda doc: _sort_key(_lookup(doc, order_by)), reverse=descending
            )
            matched = present + missing

        if limit is not None:
            matched = matched[:limit]
        return matched

    async def commit(self, batch: WriteBatch) -> None:
        if not batch.operations:
            return

        # Resolve every update against the stored document (or an earlier
        # write of this batch) before anything is sent.
        update_keys = {
            self._doc_key(collection, doc_id)
            for kind, collection, doc_id, _ in batch.operations
            if kind == "update"
        }
        working: dict[str, dict[str, Any] | None] = {}
        if update_keys:
            ordered = sorted(update_keys)
            for key, raw in zip(ordered, await self._client.mget(ordered)):
                working[key] = json.loads(raw) if raw else None

        writes: list[tuple[str, str, str, dict[str, Any] | None]] = []
        for kind, collection, doc_id, data in batch.operations:
            key = self._doc_key(collection, doc_id)
            if kind == "set":
                document = {**data, "id": doc_id}
                working[key] = document
                writes.append(("set", collection, doc_id, document))
            elif kind == "update":
                current = working.get(key)
                if current is None:
                    raise DocumentNotFoundError(collection, doc_id)
                document = {**current, **data, "id": doc_id}
                working[key] = document
                writes.append(("set", collection, doc_id, document))
            else:
                working[key] = None
                writes.append(("delete", collection, doc_id, None))

        async with self._client.pipeline(transaction=True) as pipe:
            for kind, collection, doc_id, document in writes:
                key = self._doc_key(collection, doc_id)
                if kind == "set":
                    pipe.set(key, encode_document(document))
                    pipe.sadd(self._index_key(collection), doc_id)
                else:
                    pipe.delete(key)
                    pipe.srem(self._index_key(collection), doc_id)
            await pipe.execute()

        logger.debug("Committed %s document writes", len(writes))


def encode_document(document: dict[str, Any]) -> str:
    return json.dumps(document, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _lookup(document: dict[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return _plain(value)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return _plain(parsed)
    return None


def _sort_key(value: Any) -> Any:
    parsed = _as_datetime(value) if isinstance(value, str) else None
    return parsed if parsed is not None else value


def _text(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value
