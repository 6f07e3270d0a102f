"""Report validation errors (quality gate).

Validation errors are raised before any mutation happens. They are never
retryable: resubmitting the same report yields the same failure.

Constraints:
- The violated rule is always identified so callers can surface it verbatim
- The caller must not proceed to settlement after a validation failure
"""

from __future__ import annotations

from enum import Enum

from audit_settlement.domain.exceptions import AuditEngineError


class QualityRule(str, Enum):
    """Identifies which quality-gate rule rejected a report."""

    CRITERIA_PRESENT = "criteria_present"
    SCORE_CONSISTENCY = "score_consistency"
    REQUIRED_CRITERIA = "required_criteria"
    APPROVAL_SCORE = "approval_score"
    REJECTION_SCORE = "rejection_score"
    WEAKNESSES_DOCUMENTED = "weaknesses_documented"
    REVISION_RECOMMENDATIONS = "revision_recommendations"
    SCORE_RANGE = "score_range"


class ReportValidationError(AuditEngineError):
    """Raised when a submitted audit report fails a quality-gate rule.

    Attributes:
        rule: The rule that rejected the report.
        details: Structured values behind the failure (e.g. the computed
            criteria average or the missing criterion names).
    """

    retryable = False

    def __init__(
        self,
        rule: QualityRule,
        message: str,
        details: dict[str, object] | None = None,
    ) -> None:
        self.rule = rule
        self.details = details or {}
        super().__init__(message)
