"""Report quality gate.

Pure validation of a submitted audit report against the audit it
reports on and the milestone it decides. Runs before any state is
touched; the first failing rule raises.

Rules, in order:
1. At least one criterion evaluation; overall and criterion scores
   finite and within 0..100
2. |score - criteria average| <= max_score_variance
3. Every required criterion of the audit is evaluated (by name)
4. approved needs score >= min_approval_score
5. rejected needs score <= max_rejection_score
6. Scores below weaknesses_required_below need documented weaknesses
7. needs_revision needs at least min_revision_recommendations

Usage:
    gate = ReportQualityGate(QualityGateConfig())
    gate.validate(submission, milestone, audit)  # raises ReportValidationError
"""

from __future__ import annotations

import math

from audit_settlement.config import QualityGateConfig
from audit_settlement.domain.errors import (
    MilestoneNotEligibleError,
    QualityRule,
    ReportValidationError,
)
from audit_settlement.domain.models import (
    Audit,
    AuditDecision,
    Milestone,
    ReportSubmission,
)


def _fmt(value: float) -> str:
    return f"{value:g}"


def _in_range(score: float) -> bool:
    return math.isfinite(score) and 0 <= score <= 100


def _score_details(score: float) -> dict[str, float]:
    # NaN and infinity are not valid JSON
    return {"score": score} if math.isfinite(score) else {}


class ReportQualityGate:
    """Validates report submissions for internal consistency."""

    def __init__(self, config: QualityGateConfig) -> None:
        self._config = config

    def validate(self, submission: ReportSubmission, milestone: Milestone, audit: Audit) -> None:
        """Check a submission against every quality rule.

        Args:
            submission: The submitted report.
            milestone: Milestone the decision applies to.
            audit: Audit being reported on (supplies required criteria).

        Raises:
            MilestoneNotEligibleError: Milestone is not completed or submitted.
            ReportValidationError: A quality rule failed; ``rule`` names it.
        """
        if not milestone.is_audit_eligible:
            raise MilestoneNotEligibleError(milestone.id, milestone.status.value)

        self._check_shape(submission)
        self._check_score_consistency(submission)
        self._check_required_criteria(submission, audit)
        self._check_decision_bounds(submission)
        self._check_documentation(submission)

    def _check_shape(self, submission: ReportSubmission) -> None:
        if not submission.criteria:
            raise ReportValidationError(
                QualityRule.CRITERIA_PRESENT,
                "At least one criterion evaluation is required",
            )
        if not _in_range(submission.score):
            raise ReportValidationError(
                QualityRule.SCORE_RANGE,
                f"Overall score ({_fmt(submission.score)}) must be between 0 and 100",
                _score_details(submission.score),
            )
        for evaluation in submission.criteria:
            if not _in_range(evaluation.score):
                raise ReportValidationError(
                    QualityRule.SCORE_RANGE,
                    f"Criterion '{evaluation.name}' score ({_fmt(evaluation.score)}) "
                    "must be between 0 and 100",
                    {"criterion": evaluation.name, **_score_details(evaluation.score)},
                )

    def _check_score_consistency(self, submission: ReportSubmission) -> None:
        average = submission.criteria_average
        if abs(submission.score - average) > self._config.max_score_variance:
            raise ReportValidationError(
                QualityRule.SCORE_CONSISTENCY,
                f"Overall score ({_fmt(submission.score)}) is inconsistent with "
                f"criteria average ({average:.1f})",
                {"score": submission.score, "criteria_average": average},
            )

    def _check_required_criteria(self, submission: ReportSubmission, audit: Audit) -> None:
        submitted = submission.criterion_names
        missing = [name for name in audit.required_criteria if name not in submitted]
        if missing:
            raise ReportValidationError(
                QualityRule.REQUIRED_CRITERIA,
                f"Missing required criteria evaluations: {', '.join(missing)}",
                {"missing": missing},
            )

    def _check_decision_bounds(self, submission: ReportSubmission) -> None:
        cfg = self._config
        if (
            submission.decision == AuditDecision.APPROVED
            and submission.score < cfg.min_approval_score
        ):
            raise ReportValidationError(
                QualityRule.APPROVAL_SCORE,
                "Score too low for approval. "
                f"Minimum required: {_fmt(cfg.min_approval_score)}",
                {"score": submission.score, "minimum": cfg.min_approval_score},
            )
        if (
            submission.decision == AuditDecision.REJECTED
            and submission.score > cfg.max_rejection_score
        ):
            raise ReportValidationError(
                QualityRule.REJECTION_SCORE,
                "Score too high for rejection. "
                f"Maximum for rejection: {_fmt(cfg.max_rejection_score)}",
                {"score": submission.score, "maximum": cfg.max_rejection_score},
            )

    def _check_documentation(self, submission: ReportSubmission) -> None:
        cfg = self._config
        if submission.score < cfg.weaknesses_required_below and not submission.report.weaknesses:
            raise ReportValidationError(
                QualityRule.WEAKNESSES_DOCUMENTED,
                "Weaknesses must be documented for scores below "
                f"{_fmt(cfg.weaknesses_required_below)}",
            )
        if (
            submission.decision == AuditDecision.NEEDS_REVISION
            and len(submission.report.recommendations) < cfg.min_revision_recommendations
        ):
            raise ReportValidationError(
                QualityRule.REVISION_RECOMMENDATIONS,
                f"At least {cfg.min_revision_recommendations} recommendations required "
                "when requesting revisions",
                {"recommendations": len(submission.report.recommendations)},
            )
