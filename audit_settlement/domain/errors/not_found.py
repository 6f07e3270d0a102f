"""Not-found errors for engine aggregates."""

from __future__ import annotations

from audit_settlement.domain.exceptions import AuditEngineError


class EntityNotFoundError(AuditEngineError):
    """Base error for a missing aggregate.

    Attributes:
        entity_id: Id that could not be resolved.
    """

    entity_name: str = "Entity"

    def __init__(self, entity_id: str, message: str | None = None) -> None:
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity_name} not found: {entity_id}")


class AuditNotFoundError(EntityNotFoundError):
    entity_name = "Audit"


class ProjectNotFoundError(EntityNotFoundError):
    entity_name = "Project"


class MilestoneNotFoundError(EntityNotFoundError):
    entity_name = "Milestone"


class AuditRequestNotFoundError(EntityNotFoundError):
    entity_name = "Audit request"


class AssignmentNotFoundError(EntityNotFoundError):
    entity_name = "Audit assignment"


class DocumentNotFoundError(EntityNotFoundError):
    """Raised by a document store when updating a document that does not exist."""

    entity_name = "Document"

    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        super().__init__(doc_id, f"Document not found: {collection}/{doc_id}")
