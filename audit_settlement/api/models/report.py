"""Audit report submission request/response models.

Typed parsing only; business validation (score consistency, required
criteria, decision bounds) happens in the quality gate and surfaces as
a 422 problem response.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from audit_settlement.api.models.common import DateTimeWithZ
from audit_settlement.domain.models import (
    AuditDecision,
    CriterionEvaluation,
    EvidenceItem,
    ReportDetails,
    ReportSubmission,
    RiskLevel,
    SubmissionResult,
)


class CriterionEvaluationModel(BaseModel):
    name: str
    met: bool
    score: float
    comments: str | None = None
    evidence: list[str] = Field(default_factory=list)


class ReportDetailsModel(BaseModel):
    summary: str
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    risk_assessment: RiskLevel = RiskLevel.LOW
    confidence_level: float = 90.0
    time_spent_hours: float = 0.0


class EvidenceItemModel(BaseModel):
    kind: str
    name: str
    content: str
    description: str | None = None
    sensitive: bool = False


class SubmitReportRequest(BaseModel):
    """Report submitted by the assigned auditor.

    Attributes:
        milestone_id: Milestone the decision applies to.
        decision: approved, rejected or needs_revision.
        score: Overall score, 0 to 100.
        criteria: Per-criterion evaluations.
        report: Narrative details.
        evidence: Attached evidence.
        follow_up_required: Keep the audit open for follow-up.
        follow_up_deadline: Follow-up deadline when required.
        additional_notes: Free text.
    """

    milestone_id: str
    decision: AuditDecision
    score: float
    criteria: list[CriterionEvaluationModel]
    report: ReportDetailsModel
    evidence: list[EvidenceItemModel] = Field(default_factory=list)
    follow_up_required: bool = False
    follow_up_deadline: datetime | None = None
    additional_notes: str = ""

    def to_submission(self, audit_id: str) -> ReportSubmission:
        """Convert to the domain submission for ``audit_id``."""
        return ReportSubmission(
            audit_id=audit_id,
            milestone_id=self.milestone_id,
            decision=self.decision,
            score=self.score,
            criteria=tuple(
                CriterionEvaluation(
                    name=c.name,
                    met=c.met,
                    score=c.score,
                    comments=c.comments,
                    evidence=tuple(c.evidence),
                )
                for c in self.criteria
            ),
            report=ReportDetails(
                summary=self.report.summary,
                strengths=tuple(self.report.strengths),
                weaknesses=tuple(self.report.weaknesses),
                recommendations=tuple(self.report.recommendations),
                risk_assessment=self.report.risk_assessment,
                confidence_level=self.report.confidence_level,
                time_spent_hours=self.report.time_spent_hours,
            ),
            evidence=tuple(
                EvidenceItem(
                    kind=e.kind,
                    name=e.name,
                    content=e.content,
                    description=e.description,
                    sensitive=e.sensitive,
                )
                for e in self.evidence
            ),
            follow_up_required=self.follow_up_required,
            follow_up_deadline=self.follow_up_deadline,
            additional_notes=self.additional_notes,
        )


class SettlementSummary(BaseModel):
    status: str
    contributions_considered: int
    entries_released: int
    entries_skipped: int
    total_released: int
    failed_entries: int


class CompensationSummary(BaseModel):
    status: str
    amount: int
    record_id: str | None = None


class SubmitReportResponse(BaseModel):
    """Outcome of a report submission.

    ``status`` is ``partial`` when settlement or compensation persistence
    did not fully succeed; the milestone decision is committed either way.
    """

    report_id: str
    audit_id: str
    milestone_id: str
    decision: str
    score: float
    status: str
    milestone_status: str
    audit_status: str
    project_version: int
    funds_released: int
    settlement: SettlementSummary
    compensation: CompensationSummary
    next_milestone_id: str | None = None
    submitted_at: DateTimeWithZ

    @classmethod
    def from_result(cls, result: SubmissionResult, submitted_at: datetime) -> "SubmitReportResponse":
        settlement = result.settlement
        return cls(
            report_id=result.report_id,
            audit_id=result.audit_id,
            milestone_id=result.milestone_id,
            decision=result.decision,
            score=result.score,
            status=result.status.value,
            milestone_status=result.milestone_status,
            audit_status=result.audit_status,
            project_version=result.project_version,
            funds_released=result.funds_released,
            settlement=SettlementSummary(
                status=settlement.status.value,
                contributions_considered=settlement.contributions_considered,
                entries_released=settlement.entries_released,
                entries_skipped=settlement.entries_skipped,
                total_released=settlement.total_released,
                failed_entries=len(settlement.failures),
            ),
            compensation=CompensationSummary(
                status=result.compensation.status.value,
                amount=result.compensation.amount,
                record_id=result.compensation.record_id,
            ),
            next_milestone_id=result.next_milestone_id,
            submitted_at=submitted_at,
        )
