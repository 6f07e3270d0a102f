"""Document store port.

Protocol defining the four document operations the engine depends on:
point read/write by id, filtered/ordered/limited query, atomic increment
of numeric fields, and a transaction with read-your-writes and
abort-on-conflict semantics scoped to the documents it touched.

Field paths are dotted (``escrow.release_schedule.0.released``); numeric
path segments address list elements.

Developer Golden Rules:
1. Engine code depends on this protocol, never on a concrete store
2. Partial updates only touch the paths they name
3. Reads inside a transaction register the document for conflict checks
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncContextManager, Mapping, Protocol, Sequence


class FilterOp(str, Enum):
    """Comparison operators supported by ``query``."""

    EQ = "=="
    NE = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    IN = "in"
    ARRAY_CONTAINS = "array_contains"


@dataclass(frozen=True)
class FieldFilter:
    """A single ``field op value`` predicate."""

    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class OrderBy:
    """Sort key for ``query``; missing values sort first."""

    field: str
    descending: bool = False


class DocumentTransactionProtocol(Protocol):
    """Operations available inside a transaction.

    Reads are awaited; writes are buffered and applied atomically on
    commit. A read after a buffered write returns the written state.
    """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Read a document and register it for conflict detection."""
        ...

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Buffer a full overwrite (or creation) of a document."""
        ...

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Buffer a partial update of an existing document."""
        ...

    @abstractmethod
    def increment(self, collection: str, doc_id: str, deltas: Mapping[str, int | float]) -> None:
        """Buffer atomic increments; the document is created if missing."""
        ...


class DocumentStoreProtocol(Protocol):
    """Protocol for the generic document store collaborator."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Read a document by id.

        Returns:
            A copy of the document, or None if it does not exist.
        """
        ...

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Create or overwrite a document."""
        ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Update only the given paths of an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Sequence[OrderBy] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents matching all filters, sorted, at most ``limit``."""
        ...

    @abstractmethod
    async def increment(
        self, collection: str, doc_id: str, deltas: Mapping[str, int | float]
    ) -> None:
        """Atomically add deltas to numeric fields, creating the document if missing."""
        ...

    @abstractmethod
    def transaction(self) -> AsyncContextManager[DocumentTransactionProtocol]:
        """Open a transaction.

        Buffered writes are committed when the context exits without an
        exception and discarded otherwise.

        Raises:
            TransactionConflictError: On exit, if a document read inside the
                transaction was modified by another writer.
        """
        ...
