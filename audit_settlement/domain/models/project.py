"""Project aggregate with embedded milestones.

The project document is the consistency boundary for milestone state.
Every accepted mutation increments ``version`` by exactly one, and a
writer that observes a stale version must abort.

Constraints:
- Milestones are only changed inside a transaction that checks the version
- Only completed or submitted milestones are eligible for an audit outcome
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from audit_settlement.domain.primitives import UNSET, PartialUpdate, coerce_datetime


class MilestoneStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"


AUDIT_ELIGIBLE_STATUSES = frozenset({MilestoneStatus.COMPLETED, MilestoneStatus.SUBMITTED})


@dataclass(frozen=True)
class Milestone:
    """A funding milestone embedded in a project.

    Attributes:
        id: Milestone identifier.
        title: Display title.
        status: Milestone status.
        funding_percentage: Share of project funding released on approval.
        audit_required: Whether the milestone needs an audit.
        audit_status: Audit progress marker.
        audit_score: Score of the completed audit.
        audit_decision: Decision of the completed audit.
        audit_completed_at: When the audit outcome was written.
        audit_report_id: Report that produced the outcome.
        audited_by: Auditor that produced the outcome.
    """

    id: str
    title: str = ""
    status: MilestoneStatus = MilestoneStatus.PENDING
    funding_percentage: float = 0.0
    audit_required: bool = True
    audit_status: str | None = None
    audit_score: float | None = None
    audit_decision: str | None = None
    audit_completed_at: datetime | None = None
    audit_report_id: str | None = None
    audited_by: str | None = None

    @property
    def is_audit_eligible(self) -> bool:
        return self.status in AUDIT_ELIGIBLE_STATUSES

    def with_audit_outcome(
        self,
        status: MilestoneStatus,
        decision: str,
        score: float,
        report_id: str,
        auditor_id: str,
        completed_at: datetime,
    ) -> "Milestone":
        """Return a copy carrying the outcome of an audit."""
        return replace(
            self,
            status=status,
            audit_status="completed",
            audit_score=score,
            audit_decision=decision,
            audit_completed_at=completed_at,
            audit_report_id=report_id,
            audited_by=auditor_id,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Milestone":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            status=MilestoneStatus(data.get("status", MilestoneStatus.PENDING.value)),
            funding_percentage=float(data.get("funding_percentage") or 0.0),
            audit_required=bool(data.get("audit_required", True)),
            audit_status=data.get("audit_status"),
            audit_score=data.get("audit_score"),
            audit_decision=data.get("audit_decision"),
            audit_completed_at=coerce_datetime(data.get("audit_completed_at")),
            audit_report_id=data.get("audit_report_id"),
            audited_by=data.get("audited_by"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "funding_percentage": self.funding_percentage,
            "audit_required": self.audit_required,
            "audit_status": self.audit_status,
            "audit_score": self.audit_score,
            "audit_decision": self.audit_decision,
            "audit_completed_at": self.audit_completed_at,
            "audit_report_id": self.audit_report_id,
            "audited_by": self.audited_by,
        }


@dataclass(frozen=True)
class MilestoneAuditSummary:
    """Summary of the most recent milestone audit, kept on the project."""

    milestone_id: str
    decision: str
    score: float
    completed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "milestone_id": self.milestone_id,
            "decision": self.decision,
            "score": self.score,
            "completed_at": self.completed_at,
        }


@dataclass(frozen=True)
class ProjectSettings:
    auto_release_on_audit_approval: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ProjectSettings":
        data = data or {}
        return cls(
            auto_release_on_audit_approval=bool(
                data.get("auto_release_on_audit_approval", False)
            )
        )


@dataclass(frozen=True)
class Project:
    """Project as read by the settlement engine.

    Attributes:
        id: Project identifier.
        title: Display title.
        creator_id: Creator to notify about audit outcomes.
        category: Category (drives the interest base rate).
        version: Optimistic-concurrency version.
        milestones: Embedded milestones, in order.
        settings: Project settings.
        payout_destination: Transfer destination for released funds.
        currency: ISO currency of contributions.
        audit_score: Latest project-level audit score (drives interest bonus).
    """

    id: str
    version: int
    title: str = ""
    creator_id: str | None = None
    category: str = ""
    milestones: tuple[Milestone, ...] = ()
    settings: ProjectSettings = field(default_factory=ProjectSettings)
    payout_destination: str | None = None
    currency: str = "eur"
    audit_score: float | None = None

    def find_milestone(self, milestone_id: str) -> Milestone | None:
        for milestone in self.milestones:
            if milestone.id == milestone_id:
                return milestone
        return None

    def replace_milestone(self, updated: Milestone) -> tuple[Milestone, ...]:
        """Milestones with ``updated`` swapped in by id, order preserved."""
        return tuple(
            updated if milestone.id == updated.id else milestone
            for milestone in self.milestones
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            version=int(data.get("version") or 0),
            title=data.get("title", ""),
            creator_id=data.get("creator_id"),
            category=data.get("category", ""),
            milestones=tuple(Milestone.from_dict(m) for m in data.get("milestones") or ()),
            settings=ProjectSettings.from_dict(data.get("settings")),
            payout_destination=data.get("payout_destination"),
            currency=data.get("currency", "eur"),
            audit_score=data.get("audit_score"),
        )


@dataclass(frozen=True)
class ProjectPatch(PartialUpdate):
    """Touched fields of a project.

    ``version`` must always be set to the read version plus one.
    """

    milestones: Any = UNSET
    last_milestone_audit: Any = field(
        default=UNSET, metadata={"path": "audit.last_milestone_audit"}
    )
    version: Any = UNSET
    updated_at: Any = UNSET
