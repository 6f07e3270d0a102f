"""Assignment acceptance request/response models."""

from pydantic import BaseModel

from audit_settlement.api.models.common import DateTimeWithZ
from audit_settlement.domain.models import Audit


class AcceptAssignmentRequest(BaseModel):
    """Acceptance by the assigned auditor."""

    auditor_id: str


class AcceptAssignmentResponse(BaseModel):
    """The audit opened by an accepted assignment."""

    assignment_id: str
    audit_id: str
    project_id: str
    auditor_id: str
    status: str
    deadline: DateTimeWithZ
    current_milestone: str | None = None
    base_compensation: int

    @classmethod
    def from_audit(cls, assignment_id: str, audit: Audit) -> "AcceptAssignmentResponse":
        return cls(
            assignment_id=assignment_id,
            audit_id=audit.id,
            project_id=audit.project_id,
            auditor_id=audit.auditor_id,
            status=audit.status.value,
            deadline=audit.deadline,
            current_milestone=audit.current_milestone,
            base_compensation=audit.compensation.amount,
        )
