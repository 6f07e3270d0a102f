"""Audit assignment model.

An assignment offers one audit request to one auditor. The auditor has
until ``acceptance_deadline`` to accept; the queue sweep expires the
assignment afterwards and re-opens the request.
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


class AssignmentStatus(str, Enum):
    """Status of an assignment offer."""

    PENDING_ACCEPTANCE = "pending_acceptance"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AuditAssignment:
    """An offer of an audit request to a single auditor.

    Attributes:
        id: Assignment identifier.
        audit_request_id: The request being offered.
        auditor_id: The auditor offered the work.
        project_id: Project under audit.
        status: Offer status.
        assigned_at: When the offer was made.
        acceptance_deadline: Last moment the offer can be accepted.
        match_score: Score the matcher gave this auditor.
        reminder_sent: Whether the single deadline reminder went out.
        accepted_at: When the auditor accepted.
        expired_at: When the sweep expired the offer.
    """

    id: str
    audit_request_id: str
    auditor_id: str
    project_id: str
    assigned_at: datetime
    acceptance_deadline: datetime
    status: AssignmentStatus = AssignmentStatus.PENDING_ACCEPTANCE
    match_score: int = 0
    reminder_sent: bool = False
    accepted_at: datetime | None = None
    expired_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditAssignment":
        return cls(
            id=data["id"],
            audit_request_id=data["audit_request_id"],
            auditor_id=data["auditor_id"],
            project_id=data.get("project_id", ""),
            assigned_at=require_datetime(data.get("assigned_at"), "assigned_at"),
            acceptance_deadline=require_datetime(
                data.get("acceptance_deadline"), "acceptance_deadline"
            ),
            status=AssignmentStatus(data.get("status", AssignmentStatus.PENDING_ACCEPTANCE.value)),
            match_score=int(data.get("match_score") or 0),
            reminder_sent=bool(data.get("reminder_sent", False)),
            accepted_at=coerce_datetime(data.get("accepted_at")),
            expired_at=coerce_datetime(data.get("expired_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "audit_request_id": self.audit_request_id,
            "auditor_id": self.auditor_id,
            "project_id": self.project_id,
            "assigned_at": self.assigned_at,
            "acceptance_deadline": self.acceptance_deadline,
            "status": self.status.value,
            "match_score": self.match_score,
            "reminder_sent": self.reminder_sent,
            "accepted_at": self.accepted_at,
            "expired_at": self.expired_at,
        }

    def is_overdue(self, now: datetime) -> bool:
        return now > self.acceptance_deadline


@dataclass(frozen=True)
class AuditAssignmentPatch(PartialUpdate):
    status: Any = UNSET
    reminder_sent: Any = UNSET
    reminder_sent_at: Any = UNSET
    accepted_at: Any = UNSET
    expired_at: Any = UNSET
    expired_reason: Any = UNSET
    audit_id: Any = UNSET
