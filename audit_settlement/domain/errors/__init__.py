"""Domain errors for the audit settlement engine.

Provides specific exception classes for different failure scenarios.
All exceptions inherit from AuditEngineError.

Error classes:
- Validation (quality gate, bad input): never retried
- Conflict (stale project version, aborted transaction): retryable
- Infrastructure (payment, notification): isolated per item
"""

from audit_settlement.domain.errors.concurrency import (
    TransactionConflictError,
    VersionConflictError,
)
from audit_settlement.domain.errors.infrastructure import (
    NotificationDeliveryError,
    PaymentTransferError,
)
from audit_settlement.domain.errors.not_found import (
    AssignmentNotFoundError,
    AuditNotFoundError,
    AuditRequestNotFoundError,
    DocumentNotFoundError,
    EntityNotFoundError,
    MilestoneNotFoundError,
    ProjectNotFoundError,
)
from audit_settlement.domain.errors.state_transition import (
    AssignmentExpiredError,
    AssignmentNotPendingError,
    AuditorMismatchError,
    InvalidAuditStateError,
    InvalidStateError,
    MilestoneNotEligibleError,
)
from audit_settlement.domain.errors.validation import (
    QualityRule,
    ReportValidationError,
)

__all__: list[str] = [
    "AssignmentExpiredError",
    "AssignmentNotFoundError",
    "AssignmentNotPendingError",
    "AuditNotFoundError",
    "AuditRequestNotFoundError",
    "AuditorMismatchError",
    "DocumentNotFoundError",
    "EntityNotFoundError",
    "InvalidAuditStateError",
    "InvalidStateError",
    "MilestoneNotEligibleError",
    "MilestoneNotFoundError",
    "NotificationDeliveryError",
    "PaymentTransferError",
    "ProjectNotFoundError",
    "QualityRule",
    "ReportValidationError",
    "TransactionConflictError",
    "VersionConflictError",
]
