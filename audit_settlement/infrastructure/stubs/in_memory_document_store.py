"""In-memory document store stub.

This module provides an in-memory implementation of DocumentStoreProtocol
for testing and local development. Documents are plain dicts addressed by
collection and id; nested fields are addressed by dotted paths, with
numeric segments indexing into lists.

Transactions are optimistic: every document read inside a transaction
records its revision, writes are buffered as operations, and commit
aborts with TransactionConflictError if any read document was changed by
another writer in the meantime. Buffered operations are replayed against
the current state at commit, so a transaction only changes the paths it
wrote.

Test helpers:
- seed(): insert documents without counting as a write
- fail_next(): make the next matching operation raise
- on_next_transaction() / before_next_commit(): interleave a concurrent
  writer to exercise conflict paths
"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from structlog import get_logger

from audit_settlement.application.ports.document_store import (
    FieldFilter,
    FilterOp,
    OrderBy,
)
from audit_settlement.domain.errors import DocumentNotFoundError, TransactionConflictError

logger = get_logger(__name__)

_MISSING = object()

Hook = Callable[["InMemoryDocumentStore"], Awaitable[None]]


def get_path(document: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path; returns ``_MISSING`` when absent."""
    current: Any = document
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return _MISSING
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def set_path(document: dict[str, Any], path: str, value: Any) -> None:
    """Write a value at a dotted path, creating intermediate maps."""
    segments = path.split(".")
    current: Any = document
    for segment in segments[:-1]:
        if isinstance(current, list):
            current = current[int(segment)]
            continue
        child = current.get(segment)
        if not isinstance(child, (dict, list)):
            child = {}
            current[segment] = child
        current = child
    last = segments[-1]
    if isinstance(current, list):
        current[int(last)] = value
    else:
        current[last] = value


def _matches(document: Mapping[str, Any], flt: FieldFilter) -> bool:
    value = get_path(document, flt.field)
    if value is _MISSING:
        return False
    try:
        if flt.op == FilterOp.EQ:
            return value == flt.value
        if flt.op == FilterOp.NE:
            return value != flt.value
        if flt.op == FilterOp.IN:
            return value in flt.value
        if flt.op == FilterOp.ARRAY_CONTAINS:
            return isinstance(value, list) and flt.value in value
        if value is None:
            return False
        if flt.op == FilterOp.LT:
            return value < flt.value
        if flt.op == FilterOp.LTE:
            return value <= flt.value
        if flt.op == FilterOp.GT:
            return value > flt.value
        if flt.op == FilterOp.GTE:
            return value >= flt.value
    except TypeError:
        return False
    raise ValueError(f"Unsupported filter operator: {flt.op}")


def _sort_key(field_path: str) -> Callable[[Mapping[str, Any]], tuple[int, Any]]:
    def key(document: Mapping[str, Any]) -> tuple[int, Any]:
        value = get_path(document, field_path)
        if value is _MISSING or value is None:
            return (0, None)
        return (1, value)

    return key


@dataclass(frozen=True)
class _WriteOp:
    kind: str  # "set" | "update" | "increment"
    collection: str
    doc_id: str
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class _Failure:
    operation: str
    collection: str | None
    exception: Exception


def _apply(current: dict[str, Any] | None, op: _WriteOp) -> dict[str, Any]:
    if op.kind == "set":
        return copy.deepcopy(dict(op.payload))
    if op.kind == "update":
        if current is None:
            raise DocumentNotFoundError(op.collection, op.doc_id)
        updated = copy.deepcopy(current)
        for path, value in op.payload.items():
            set_path(updated, path, copy.deepcopy(value))
        return updated
    updated = copy.deepcopy(current) if current is not None else {"id": op.doc_id}
    for path, delta in op.payload.items():
        existing = get_path(updated, path)
        base = 0 if existing is _MISSING or existing is None else existing
        set_path(updated, path, base + delta)
    return updated


class InMemoryTransaction:
    """Transaction handle returned by ``InMemoryDocumentStore.transaction``."""

    def __init__(self, store: "InMemoryDocumentStore") -> None:
        self._store = store
        self._read_revisions: dict[tuple[str, str], int] = {}
        self._working: dict[tuple[str, str], dict[str, Any] | None] = {}
        self._ops: list[_WriteOp] = []

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        key = (collection, doc_id)
        if key not in self._working:
            self._store._check_failure("get", collection)
            self._read_revisions[key] = self._store._revision(key)
            self._working[key] = self._store._snapshot(collection, doc_id)
        elif key not in self._read_revisions:
            self._read_revisions[key] = self._store._revision(key)
        return copy.deepcopy(self._working[key])

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        self._buffer(_WriteOp("set", collection, doc_id, dict(data)))

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        self._buffer(_WriteOp("update", collection, doc_id, dict(fields)))

    def increment(self, collection: str, doc_id: str, deltas: Mapping[str, int | float]) -> None:
        self._buffer(_WriteOp("increment", collection, doc_id, dict(deltas)))

    def _buffer(self, op: _WriteOp) -> None:
        key = (op.collection, op.doc_id)
        if key not in self._working:
            self._working[key] = self._store._snapshot(op.collection, op.doc_id)
        self._working[key] = _apply(self._working[key], op)
        self._ops.append(op)

    def _commit(self) -> None:
        for key, revision in self._read_revisions.items():
            if self._store._revision(key) != revision:
                raise TransactionConflictError(*key)
        for op in self._ops:
            self._store._check_failure("commit", op.collection)
        staged: dict[tuple[str, str], dict[str, Any] | None] = {}
        for op in self._ops:
            key = (op.collection, op.doc_id)
            current = staged[key] if key in staged else self._store._raw(key)
            staged[key] = _apply(current, op)
        for op in self._ops:
            self._store.write_history.append((op.kind, op.collection, op.doc_id))
        for (collection, doc_id), document in staged.items():
            self._store._put(collection, doc_id, document)
        self._store.commit_count += 1


class InMemoryDocumentStore:
    """In-memory DocumentStoreProtocol implementation.

    Attributes:
        write_history: (kind, collection, doc_id) for every applied write.
        commit_count: Number of committed transactions.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._revisions: dict[tuple[str, str], int] = {}
        self._failures: list[_Failure] = []
        self._transaction_hooks: list[Hook] = []
        self._commit_hooks: list[Hook] = []
        self.write_history: list[tuple[str, str, str]] = []
        self.commit_count = 0

    # Protocol operations

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        self._check_failure("get", collection)
        return self._snapshot(collection, doc_id)

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        self._check_failure("set", collection)
        self._write(_WriteOp("set", collection, doc_id, dict(data)))

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        self._check_failure("update", collection)
        self._write(_WriteOp("update", collection, doc_id, dict(fields)))

    async def increment(
        self, collection: str, doc_id: str, deltas: Mapping[str, int | float]
    ) -> None:
        self._check_failure("increment", collection)
        self._write(_WriteOp("increment", collection, doc_id, dict(deltas)))

    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Sequence[OrderBy] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self._check_failure("query", collection)
        documents = [
            doc
            for doc in self._collections.get(collection, {}).values()
            if all(_matches(doc, flt) for flt in filters)
        ]
        for order in reversed(order_by):
            documents.sort(key=_sort_key(order.field), reverse=order.descending)
        if limit is not None:
            documents = documents[:limit]
        return [copy.deepcopy(doc) for doc in documents]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryTransaction]:
        await self._run_hooks(self._transaction_hooks)
        txn = InMemoryTransaction(self)
        yield txn
        await self._run_hooks(self._commit_hooks)
        try:
            txn._commit()
        except TransactionConflictError as exc:
            logger.warning(
                "transaction_aborted",
                collection=exc.collection,
                doc_id=exc.doc_id,
            )
            raise

    # Test helpers

    def seed(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Insert a document directly (test helper)."""
        document = copy.deepcopy(dict(data))
        document.setdefault("id", doc_id)
        self._put(collection, doc_id, document)

    def documents(self, collection: str) -> dict[str, dict[str, Any]]:
        """Copy of every document in a collection (test helper)."""
        return copy.deepcopy(self._collections.get(collection, {}))

    def peek(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Read without failure injection (test helper)."""
        return self._snapshot(collection, doc_id)

    def writes_to(self, collection: str) -> list[tuple[str, str, str]]:
        return [entry for entry in self.write_history if entry[1] == collection]

    def fail_next(
        self,
        operation: str,
        collection: str | None = None,
        exception: Exception | None = None,
    ) -> None:
        """Configure the next matching operation to fail (test helper).

        Args:
            operation: get, set, update, increment, query or commit.
            collection: Restrict to one collection; None matches any.
            exception: Exception to raise (default RuntimeError).
        """
        self._failures.append(
            _Failure(
                operation=operation,
                collection=collection,
                exception=exception or RuntimeError(f"Simulated {operation} failure"),
            )
        )

    def on_next_transaction(self, hook: Hook) -> None:
        """Run ``hook`` when the next transaction opens (test helper)."""
        self._transaction_hooks.append(hook)

    def before_next_commit(self, hook: Hook) -> None:
        """Run ``hook`` just before the next transaction commits (test helper)."""
        self._commit_hooks.append(hook)

    # Internals

    def _raw(self, key: tuple[str, str]) -> dict[str, Any] | None:
        collection, doc_id = key
        return self._collections.get(collection, {}).get(doc_id)

    def _snapshot(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        document = self._raw((collection, doc_id))
        return copy.deepcopy(document) if document is not None else None

    def _revision(self, key: tuple[str, str]) -> int:
        return self._revisions.get(key, 0)

    def _put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        self._collections.setdefault(collection, {})[doc_id] = document
        key = (collection, doc_id)
        self._revisions[key] = self._revision(key) + 1

    def _write(self, op: _WriteOp) -> None:
        updated = _apply(self._raw((op.collection, op.doc_id)), op)
        self.write_history.append((op.kind, op.collection, op.doc_id))
        self._put(op.collection, op.doc_id, updated)

    def _check_failure(self, operation: str, collection: str) -> None:
        for index, failure in enumerate(self._failures):
            if failure.operation == operation and failure.collection in (None, collection):
                del self._failures[index]
                raise failure.exception

    async def _run_hooks(self, hooks: list[Hook]) -> None:
        pending = list(hooks)
        hooks.clear()
        for hook in pending:
            await hook(self)
