"""Submitted audit report.

A report submission carries the auditor's decision, overall score and
per-criterion evaluations. It is validated by the quality gate before any
state is touched.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from audit_settlement.domain.models.project import MilestoneStatus


class AuditDecision(str, Enum):
    """Auditor decision on a milestone."""

    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"

    @property
    def milestone_status(self) -> MilestoneStatus:
        """Milestone status this decision transitions to."""
        return _DECISION_TO_MILESTONE[self]


_DECISION_TO_MILESTONE = {
    AuditDecision.APPROVED: MilestoneStatus.APPROVED,
    AuditDecision.REJECTED: MilestoneStatus.REJECTED,
    AuditDecision.NEEDS_REVISION: MilestoneStatus.NEEDS_REVISION,
}


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class CriterionEvaluation:
    """Evaluation of one criterion."""

    name: str
    met: bool
    score: float
    comments: str | None = None
    evidence: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "met": self.met,
            "score": self.score,
            "comments": self.comments,
            "evidence": list(self.evidence),
        }


@dataclass(frozen=True)
class ReportDetails:
    """Narrative part of the report.

    Attributes:
        summary: Overall findings.
        strengths: Documented strengths.
        weaknesses: Documented weaknesses; mandatory for low scores.
        recommendations: Recommendations to the creator.
        risk_assessment: Assessed risk level.
        confidence_level: Auditor confidence, 70 to 100.
        time_spent_hours: Hours spent on the audit.
    """

    summary: str
    strengths: tuple[str, ...]
    recommendations: tuple[str, ...]
    risk_assessment: RiskLevel
    time_spent_hours: float
    weaknesses: tuple[str, ...] = ()
    confidence_level: float = 90.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "recommendations": list(self.recommendations),
            "risk_assessment": self.risk_assessment.value,
            "confidence_level": self.confidence_level,
            "time_spent_hours": self.time_spent_hours,
        }


@dataclass(frozen=True)
class EvidenceItem:
    kind: str
    name: str
    content: str
    description: str | None = None
    sensitive: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "content": self.content,
            "description": self.description,
            "sensitive": self.sensitive,
        }


@dataclass(frozen=True)
class ReportSubmission:
    """A report as submitted by the assigned auditor.

    Attributes:
        audit_id: Audit being reported on.
        milestone_id: Milestone the decision applies to.
        decision: Auditor decision.
        score: Overall score, 0 to 100.
        criteria: Per-criterion evaluations.
        report: Narrative details.
        evidence: Attached evidence.
        follow_up_required: Whether the audit stays open for follow-up.
        follow_up_deadline: Follow-up deadline when required.
        additional_notes: Free text.
    """

    audit_id: str
    milestone_id: str
    decision: AuditDecision
    score: float
    criteria: tuple[CriterionEvaluation, ...]
    report: ReportDetails
    evidence: tuple[EvidenceItem, ...] = ()
    follow_up_required: bool = False
    follow_up_deadline: datetime | None = None
    additional_notes: str = ""

    @property
    def criteria_average(self) -> float:
        """Mean of the per-criterion scores (0.0 when there are none)."""
        if not self.criteria:
            return 0.0
        return sum(c.score for c in self.criteria) / len(self.criteria)

    @property
    def criterion_names(self) -> set[str]:
        return {c.name for c in self.criteria}
