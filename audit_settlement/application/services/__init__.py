"""Application services, one per engine component."""

from audit_settlement.application.services.assignment_lifecycle_service import (
    AssignmentLifecycleService,
)
from audit_settlement.application.services.auditor_matching_service import (
    AuditorMatchingService,
    ScoredAuditor,
)
from audit_settlement.application.services.compensation_service import (
    CompensationCalculator,
    CompensationService,
)
from audit_settlement.application.services.interest_accrual_service import (
    InterestAccrualService,
)
from audit_settlement.application.services.milestone_settlement_service import (
    MilestoneSettlementService,
    MilestoneTransition,
)
from audit_settlement.application.services.report_quality_gate import ReportQualityGate
from audit_settlement.application.services.report_submission_service import (
    ReportSubmissionService,
)

__all__ = [
    "AssignmentLifecycleService",
    "AuditorMatchingService",
    "CompensationCalculator",
    "CompensationService",
    "InterestAccrualService",
    "MilestoneSettlementService",
    "MilestoneTransition",
    "ReportQualityGate",
    "ReportSubmissionService",
    "ScoredAuditor",
]
