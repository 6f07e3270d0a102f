"""Audit model.

An audit is the accepted unit of work. It is owned by the assigned auditor
until completion. After it reaches ``completed`` only its compensation
sub-fields may change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from audit_settlement.domain.primitives import (
    UNSET,
    PartialUpdate,
    coerce_datetime,
    require_datetime,
)


class AuditStatus(str, Enum):
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PENDING_FOLLOW_UP = "pending_follow_up"


class CompensationState(str, Enum):
    """Status of the compensation block embedded in an audit."""

    PENDING = "pending"
    CALCULATED = "calculated"


@dataclass(frozen=True)
class AuditCriterion:
    """A criterion the auditor must evaluate.

    Attributes:
        name: Criterion name, matched by name against submissions.
        required: Whether a submission must evaluate it.
    """

    name: str
    required: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditCriterion":
        return cls(name=data["name"], required=bool(data.get("required", False)))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "required": self.required}


@dataclass(frozen=True)
class AuditCompensation:
    """Compensation block of an audit.

    Attributes:
        amount: Base fee agreed at acceptance (minor units).
        status: pending until the final amount is calculated.
        final_amount: Amount after quality and timing multipliers.
        quality_multiplier: Applied quality multiplier.
        timing_multiplier: Applied timing multiplier.
        calculated_at: When the final amount was calculated.
    """

    amount: int
    status: CompensationState = CompensationState.PENDING
    final_amount: int | None = None
    quality_multiplier: float | None = None
    timing_multiplier: float | None = None
    calculated_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "AuditCompensation":
        data = data or {}
        return cls(
            amount=int(data.get("amount") or 0),
            status=CompensationState(data.get("status", CompensationState.PENDING.value)),
            final_amount=data.get("final_amount"),
            quality_multiplier=data.get("quality_multiplier"),
            timing_multiplier=data.get("timing_multiplier"),
            calculated_at=coerce_datetime(data.get("calculated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "status": self.status.value,
            "final_amount": self.final_amount,
            "quality_multiplier": self.quality_multiplier,
            "timing_multiplier": self.timing_multiplier,
            "calculated_at": self.calculated_at,
        }


@dataclass(frozen=True)
class Audit:
    """An accepted audit.

    Attributes:
        id: Audit identifier.
        project_id: Project under audit.
        auditor_id: Owning auditor.
        status: Audit status.
        deadline: When the report is due.
        criteria: Criteria to evaluate.
        compensation: Compensation block.
        current_milestone: Milestone being audited.
        audit_request_id: Request this audit came from.
        accepted_at: When the assignment was accepted.
        completed_at: When the report was submitted.
        report_id: Submitted report.
    """

    id: str
    project_id: str
    auditor_id: str
    deadline: datetime
    compensation: AuditCompensation
    status: AuditStatus = AuditStatus.IN_PROGRESS
    criteria: tuple[AuditCriterion, ...] = ()
    current_milestone: str | None = None
    audit_request_id: str | None = None
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    report_id: str | None = None

    @property
    def required_criteria(self) -> list[str]:
        return [c.name for c in self.criteria if c.required]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Audit":
        return cls(
            id=data["id"],
            project_id=data["project_id"],
            auditor_id=data["auditor_id"],
            deadline=require_datetime(data.get("deadline"), "deadline"),
            compensation=AuditCompensation.from_dict(data.get("compensation")),
            status=AuditStatus(data.get("status", AuditStatus.IN_PROGRESS.value)),
            criteria=tuple(
                AuditCriterion.from_dict(c) for c in data.get("criteria") or ()
            ),
            current_milestone=data.get("current_milestone"),
            audit_request_id=data.get("audit_request_id"),
            accepted_at=coerce_datetime(data.get("accepted_at")),
            completed_at=coerce_datetime(data.get("completed_at")),
            report_id=data.get("report_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "auditor_id": self.auditor_id,
            "deadline": self.deadline,
            "compensation": self.compensation.to_dict(),
            "status": self.status.value,
            "criteria": [c.to_dict() for c in self.criteria],
            "current_milestone": self.current_milestone,
            "audit_request_id": self.audit_request_id,
            "accepted_at": self.accepted_at,
            "completed_at": self.completed_at,
            "report_id": self.report_id,
        }


@dataclass(frozen=True)
class AuditPatch(PartialUpdate):
    """Touched fields of an audit after report submission."""

    status: Any = UNSET
    completed_at: Any = UNSET
    report_id: Any = UNSET
    final_decision: Any = UNSET
    final_score: Any = UNSET
    follow_up_required: Any = UNSET
    updated_at: Any = UNSET


@dataclass(frozen=True)
class AuditCompensationPatch(PartialUpdate):
    """Touched compensation sub-fields; the only writes allowed after completion."""

    final_amount: Any = field(default=UNSET, metadata={"path": "compensation.final_amount"})
    status: Any = field(default=UNSET, metadata={"path": "compensation.status"})
    quality_multiplier: Any = field(
        default=UNSET, metadata={"path": "compensation.quality_multiplier"}
    )
    timing_multiplier: Any = field(
        default=UNSET, metadata={"path": "compensation.timing_multiplier"}
    )
    calculated_at: Any = field(default=UNSET, metadata={"path": "compensation.calculated_at"})
    time_spent_hours: Any = field(
        default=UNSET, metadata={"path": "compensation.time_spent_hours"}
    )
