"""Concurrency errors for optimistic transactions.

The project aggregate is protected by a monotonically increasing
``version`` field. A writer that observes a stale version aborts and
raises ``VersionConflictError``; the caller re-reads and resubmits.

``TransactionConflictError`` is the lower-level signal raised by a
document store transaction when a document read inside the transaction
was changed by another writer before commit.
"""

from __future__ import annotations

from audit_settlement.domain.exceptions import AuditEngineError


class TransactionConflictError(AuditEngineError):
    """Raised when a document store transaction cannot commit.

    Attributes:
        collection: Collection of the conflicting document.
        doc_id: Id of the conflicting document.
    """

    retryable = True

    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(
            f"Transaction aborted: {collection}/{doc_id} was modified "
            "by another writer"
        )


class VersionConflictError(AuditEngineError):
    """Raised when the project version no longer matches the one read.

    This is a recoverable error - the caller should re-read the project
    and resubmit.

    Attributes:
        project_id: Project whose version moved.
        expected_version: Version the writer based its update on.
        actual_version: Version found at write time (None if unknown).
    """

    retryable = True

    def __init__(
        self,
        project_id: str,
        expected_version: int,
        actual_version: int | None = None,
    ) -> None:
        self.project_id = project_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrent modification detected for project {project_id}. "
            f"Expected version {expected_version}, found {actual_version}. "
            "Re-read the project and resubmit."
        )
