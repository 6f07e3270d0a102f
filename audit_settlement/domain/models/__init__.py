"""Domain models for the audit settlement engine."""

from audit_settlement.domain.models.audit import (
    Audit,
    AuditCompensation,
    AuditCompensationPatch,
    AuditCriterion,
    AuditPatch,
    AuditStatus,
    CompensationState,
)
from audit_settlement.domain.models.audit_assignment import (
    AssignmentStatus,
    AuditAssignment,
    AuditAssignmentPatch,
)
from audit_settlement.domain.models.audit_report import (
    AuditDecision,
    CriterionEvaluation,
    EvidenceItem,
    ReportDetails,
    ReportSubmission,
    RiskLevel,
)
from audit_settlement.domain.models.audit_request import (
    AuditComplexity,
    AuditPriority,
    AuditRequest,
    AuditRequestPatch,
    AuditRequestStatus,
)
from audit_settlement.domain.models.auditor import (
    ANY_COMPLEXITY,
    AuditorPerformance,
    AuditorProfile,
    AuditorStatus,
    AuditorWorkload,
    AuditorWorkloadDelta,
)
from audit_settlement.domain.models.compensation import (
    CompensationBreakdown,
    CompensationRecord,
    CompensationStatus,
)
from audit_settlement.domain.models.escrow import (
    Contribution,
    ContributionStatus,
    EscrowRecord,
    EscrowStatus,
    ReleaseScheduleEntry,
)
from audit_settlement.domain.models.interest import InterestCalculation
from audit_settlement.domain.models.project import (
    Milestone,
    MilestoneAuditSummary,
    MilestoneStatus,
    Project,
    ProjectPatch,
    ProjectSettings,
)
from audit_settlement.domain.models.results import (
    CompensationOutcome,
    EntryFailure,
    IntegrityReport,
    InterestRunResult,
    OperationStatus,
    QueueProcessingResult,
    SettlementOutcome,
    SubmissionResult,
)
from audit_settlement.domain.models.tickets import (
    EscalationReason,
    EscalationTicket,
    SupportTicket,
    TicketPriority,
    TicketStatus,
)

__all__ = [
    "ANY_COMPLEXITY",
    "AssignmentStatus",
    "Audit",
    "AuditAssignment",
    "AuditAssignmentPatch",
    "AuditCompensation",
    "AuditCompensationPatch",
    "AuditComplexity",
    "AuditCriterion",
    "AuditDecision",
    "AuditPatch",
    "AuditPriority",
    "AuditRequest",
    "AuditRequestPatch",
    "AuditRequestStatus",
    "AuditStatus",
    "AuditorPerformance",
    "AuditorProfile",
    "AuditorStatus",
    "AuditorWorkload",
    "AuditorWorkloadDelta",
    "CompensationBreakdown",
    "CompensationOutcome",
    "CompensationRecord",
    "CompensationState",
    "CompensationStatus",
    "Contribution",
    "ContributionStatus",
    "CriterionEvaluation",
    "EntryFailure",
    "EscalationReason",
    "EscalationTicket",
    "EscrowRecord",
    "EscrowStatus",
    "EvidenceItem",
    "IntegrityReport",
    "InterestCalculation",
    "InterestRunResult",
    "Milestone",
    "MilestoneAuditSummary",
    "MilestoneStatus",
    "OperationStatus",
    "Project",
    "ProjectPatch",
    "ProjectSettings",
    "QueueProcessingResult",
    "ReleaseScheduleEntry",
    "ReportDetails",
    "ReportSubmission",
    "RiskLevel",
    "SettlementOutcome",
    "SubmissionResult",
    "SupportTicket",
    "TicketPriority",
    "TicketStatus",
]
