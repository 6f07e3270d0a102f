"""Escalation and support tickets.

Tickets are the hand-off from automation to human operators: an
escalation when auditor assignment cannot proceed, a support ticket when
the interest integrity pass finds a ledger discrepancy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class EscalationReason(str, Enum):
    """Why an audit request was handed to operators."""

    NO_QUALIFIED_AUDITORS = "no_qualified_auditors"
    ASSIGNMENT_FAILED = "assignment_failed"
    REPEATED_REJECTIONS = "repeated_rejections"
    URGENT_PRIORITY = "urgent_priority"

    @property
    def suggested_actions(self) -> tuple[str, ...]:
        return _SUGGESTED_ACTIONS[self]


_SUGGESTED_ACTIONS: dict[EscalationReason, tuple[str, ...]] = {
    EscalationReason.NO_QUALIFIED_AUDITORS: (
        "Recruit auditors holding the required qualifications",
        "Review the qualifications required for this audit",
        "Consider training existing auditors",
    ),
    EscalationReason.ASSIGNMENT_FAILED: (
        "Retry the assignment manually",
        "Check the audit request parameters",
    ),
    EscalationReason.REPEATED_REJECTIONS: (
        "Review the audit description and requirements",
        "Increase the offered compensation",
        "Check the estimated project complexity",
    ),
    EscalationReason.URGENT_PRIORITY: (
        "Priority manual assignment required",
        "Contact available auditors directly",
        "Consider an urgency bonus",
    ),
}


class TicketStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    OPEN = "open"


class TicketPriority(str, Enum):
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class EscalationTicket:
    """Manual-intervention ticket for an audit request.

    Attributes:
        id: Ticket identifier.
        audit_request_id: Escalated request.
        project_id: Project of the request.
        reason: Escalation reason code.
        escalated_at: When automation gave up.
        suggested_actions: Reason-specific next steps for operators.
        metadata: Request context (priority, complexity, amount, age).
    """

    id: str
    audit_request_id: str
    project_id: str
    reason: EscalationReason
    escalated_at: datetime
    suggested_actions: tuple[str, ...]
    metadata: dict[str, Any] = field(default_factory=dict)
    status: TicketStatus = TicketStatus.PENDING_REVIEW
    priority: TicketPriority = TicketPriority.HIGH

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "audit_request_id": self.audit_request_id,
            "project_id": self.project_id,
            "reason": self.reason.value,
            "escalated_at": self.escalated_at,
            "suggested_actions": list(self.suggested_actions),
            "metadata": dict(self.metadata),
            "status": self.status.value,
            "priority": self.priority.value,
            "created_at": self.escalated_at,
        }


@dataclass(frozen=True)
class SupportTicket:
    """Operator ticket opened by an automated check."""

    id: str
    kind: str
    title: str
    description: str
    created_at: datetime
    data: dict[str, Any] = field(default_factory=dict)
    priority: TicketPriority = TicketPriority.CRITICAL
    status: TicketStatus = TicketStatus.OPEN

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind,
            "title": self.title,
            "description": self.description,
            "data": dict(self.data),
            "priority": self.priority.value,
            "status": self.status.value,
            "assigned_to": None,
            "auto_generated": True,
            "created_at": self.created_at,
        }
