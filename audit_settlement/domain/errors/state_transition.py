"""State transition errors for audits, milestones and assignments.

These represent requests that are well-formed but arrive while the
aggregate is in a state that does not allow them.
"""

from __future__ import annotations

from datetime import datetime

from audit_settlement.domain.exceptions import AuditEngineError


class InvalidStateError(AuditEngineError):
    """Base error for an operation attempted in the wrong state."""

    pass


class InvalidAuditStateError(InvalidStateError):
    """Raised when an audit is not in the state an operation requires.

    Attributes:
        audit_id: The audit concerned.
        current_status: Status found.
        expected_status: Status required.
    """

    def __init__(self, audit_id: str, current_status: str, expected_status: str) -> None:
        self.audit_id = audit_id
        self.current_status = current_status
        self.expected_status = expected_status
        super().__init__(
            f"Audit {audit_id} is {current_status}; "
            f"operation requires {expected_status}"
        )


class MilestoneNotEligibleError(InvalidStateError):
    """Raised when a milestone is not completed/submitted for audit."""

    def __init__(self, milestone_id: str, current_status: str) -> None:
        self.milestone_id = milestone_id
        self.current_status = current_status
        super().__init__(
            "Milestone must be completed or submitted for audit. "
            f"Milestone {milestone_id} is {current_status}"
        )


class AuditorMismatchError(InvalidStateError):
    """Raised when an auditor acts on work assigned to someone else."""

    def __init__(self, entity_id: str, auditor_id: str) -> None:
        self.entity_id = entity_id
        self.auditor_id = auditor_id
        super().__init__(
            f"Auditor {auditor_id} is not the assigned auditor for {entity_id}"
        )


class AssignmentNotPendingError(InvalidStateError):
    """Raised when an assignment is no longer awaiting acceptance."""

    def __init__(self, assignment_id: str, current_status: str) -> None:
        self.assignment_id = assignment_id
        self.current_status = current_status
        super().__init__(
            f"Assignment {assignment_id} cannot be accepted in status {current_status}"
        )


class AssignmentExpiredError(InvalidStateError):
    """Raised when an assignment is accepted after its deadline."""

    def __init__(self, assignment_id: str, acceptance_deadline: datetime) -> None:
        self.assignment_id = assignment_id
        self.acceptance_deadline = acceptance_deadline
        super().__init__(
            f"Assignment {assignment_id} expired at {acceptance_deadline.isoformat()}"
        )
