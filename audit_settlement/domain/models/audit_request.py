"""Audit request model.

An audit request is created when a milestone crosses an audit-required
threshold. It is mutated only by the assignment lifecycle, which moves it
through pending_assignment -> pending_acceptance -> assigned, back to
pending_assignment on expiry, or to escalated when automation gives up.

Constraints:
- At most one active assignment per request at a time
- Escalated is terminal until an operator reassigns manually
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from audit_settlement.domain.primitives import (
    UNSET,
    PartialUpdate,
    coerce_datetime,
    require_datetime,
)


class AuditRequestStatus(str, Enum):
    """Lifecycle status of an audit request."""

    PENDING_ASSIGNMENT = "pending_assignment"
    PENDING_ACCEPTANCE = "pending_acceptance"
    ASSIGNED = "assigned"
    ESCALATED = "escalated"


class AuditComplexity(str, Enum):
    """Estimated effort of an audit."""

    SIMPLE = "simple"
    STANDARD = "standard"
    COMPLEX = "complex"


class AuditPriority(str, Enum):
    """Scheduling priority of an audit request."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Sort rank, lower is served first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    AuditPriority.URGENT: 0,
    AuditPriority.HIGH: 1,
    AuditPriority.MEDIUM: 2,
    AuditPriority.LOW: 3,
}


@dataclass(frozen=True)
class AuditRequest:
    """A request for a milestone audit.

    Attributes:
        id: Request identifier.
        project_id: Project being audited.
        milestone_id: Milestone that triggered the request.
        project_title: Title used in notifications.
        category: Project category (drives experience scoring).
        complexity: Estimated complexity.
        required_qualifications: Qualifications an auditor must hold, all of them.
        preferred_specializations: Specializations that raise a candidate's score.
        estimated_amount: Audit fee offered, in minor units.
        deadline: When the audit itself must be complete.
        priority: Scheduling priority.
            Stored alongside its ``priority_rank`` so queue reads can order by it.
        status: Lifecycle status.
        created_at: Creation timestamp.
        assigned_auditor_id: Auditor holding the active assignment.
        assignment_id: Active assignment reference.
        assignment_deadline: Acceptance deadline of the active assignment.
        expired_assignment_count: How many assignments for this request expired.
        escalation_id: Escalation ticket, once escalated.
    """

    id: str
    project_id: str
    category: str
    complexity: AuditComplexity
    estimated_amount: int
    deadline: datetime
    created_at: datetime
    milestone_id: str | None = None
    project_title: str = ""
    required_qualifications: tuple[str, ...] = ()
    preferred_specializations: tuple[str, ...] = ()
    priority: AuditPriority = AuditPriority.MEDIUM
    status: AuditRequestStatus = AuditRequestStatus.PENDING_ASSIGNMENT
    assigned_auditor_id: str | None = None
    assignment_id: str | None = None
    assignment_deadline: datetime | None = None
    expired_assignment_count: int = 0
    escalation_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditRequest":
        return cls(
            id=data["id"],
            project_id=data["project_id"],
            milestone_id=data.get("milestone_id"),
            project_title=data.get("project_title", ""),
            category=data.get("category", ""),
            complexity=AuditComplexity(data.get("complexity", AuditComplexity.STANDARD.value)),
            required_qualifications=tuple(data.get("required_qualifications") or ()),
            preferred_specializations=tuple(data.get("preferred_specializations") or ()),
            estimated_amount=int(data.get("estimated_amount") or 0),
            deadline=require_datetime(data.get("deadline"), "deadline"),
            priority=AuditPriority(data.get("priority", AuditPriority.MEDIUM.value)),
            status=AuditRequestStatus(data.get("status", AuditRequestStatus.PENDING_ASSIGNMENT.value)),
            created_at=require_datetime(data.get("created_at"), "created_at"),
            assigned_auditor_id=data.get("assigned_auditor_id"),
            assignment_id=data.get("assignment_id"),
            assignment_deadline=coerce_datetime(data.get("assignment_deadline")),
            expired_assignment_count=int(data.get("expired_assignment_count") or 0),
            escalation_id=data.get("escalation_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "milestone_id": self.milestone_id,
            "project_title": self.project_title,
            "category": self.category,
            "complexity": self.complexity.value,
            "required_qualifications": list(self.required_qualifications),
            "preferred_specializations": list(self.preferred_specializations),
            "estimated_amount": self.estimated_amount,
            "deadline": self.deadline,
            "priority": self.priority.value,
            "priority_rank": self.priority.rank,
            "status": self.status.value,
            "created_at": self.created_at,
            "assigned_auditor_id": self.assigned_auditor_id,
            "assignment_id": self.assignment_id,
            "assignment_deadline": self.assignment_deadline,
            "expired_assignment_count": self.expired_assignment_count,
            "escalation_id": self.escalation_id,
        }


@dataclass(frozen=True)
class AuditRequestPatch(PartialUpdate):
    """Touched fields of an audit request. Clear a field by passing None."""

    status: Any = UNSET
    assigned_auditor_id: Any = UNSET
    assignment_id: Any = UNSET
    assignment_deadline: Any = UNSET
    assigned_at: Any = UNSET
    accepted_at: Any = UNSET
    escalation_id: Any = UNSET
    escalation_reason: Any = UNSET
    escalated_at: Any = UNSET
    updated_at: Any = UNSET
