"""Audit report submission.

Synchronous entry point for an auditor submitting a report:

1. Load audit, project and milestone; check ownership and state
2. Quality gate (no state touched on failure)
3. One transaction: milestone transition (version checked), report
   document, audit completion
4. Settlement for approved milestones with auto-release
5. Compensation (best-effort)
6. Notifications and statistics (fire-and-forget)

Failures after step 3 never revert the committed decision; they show up
as a ``partial`` SubmissionResult.

Developer Golden Rules:
1. Validate before any write
2. A stale project version surfaces as VersionConflictError (retryable)
3. Steps 4 to 6 report, never raise
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from structlog import get_logger

from audit_settlement.application import collections
from audit_settlement.application.ports.document_store import DocumentStoreProtocol
from audit_settlement.application.ports.notification import NotificationSenderProtocol
from audit_settlement.application.services.compensation_service import CompensationService
from audit_settlement.application.services.milestone_settlement_service import (
    MilestoneSettlementService,
    MilestoneTransition,
)
from audit_settlement.application.services.notification_dispatch import (
    notify_operators,
    send_notification,
)
from audit_settlement.application.services.report_quality_gate import ReportQualityGate
from audit_settlement.domain.errors import (
    AuditNotFoundError,
    AuditorMismatchError,
    InvalidAuditStateError,
    MilestoneNotFoundError,
    ProjectNotFoundError,
    ReportValidationError,
    TransactionConflictError,
    VersionConflictError,
)
from audit_settlement.domain.models import (
    Audit,
    AuditorWorkloadDelta,
    AuditPatch,
    AuditStatus,
    CompensationOutcome,
    OperationStatus,
    Project,
    ReportSubmission,
    SettlementOutcome,
    SubmissionResult,
)
from audit_settlement.domain.primitives import new_id
from audit_settlement.infrastructure.monitoring import EngineMetrics

logger = get_logger(__name__)

# Operators are asked to review rejections and low-scoring reports
REVIEW_SCORE_BELOW = 70


class ReportSubmissionService:
    """Accepts audit reports and drives the milestone outcome."""

    def __init__(
        self,
        store: DocumentStoreProtocol,
        quality_gate: ReportQualityGate,
        settlement: MilestoneSettlementService,
        compensation: CompensationService,
        notifier: NotificationSenderProtocol,
        metrics: EngineMetrics | None = None,
    ) -> None:
        """Initialize the submission service.

        Args:
            store: Document store for audits, projects and reports.
            quality_gate: Report validation.
            settlement: Milestone transition and escrow release.
            compensation: Auditor compensation.
            notifier: Creator, operator and auditor notifications.
            metrics: Optional Prometheus metrics.
        """
        self._store = store
        self._gate = quality_gate
        self._settlement = settlement
        self._compensation = compensation
        self._notifier = notifier
        self._metrics = metrics

    async def submit_report(
        self,
        auditor_id: str,
        submission: ReportSubmission,
        now: datetime | None = None,
    ) -> SubmissionResult:
        """Submit an audit report.

        Args:
            auditor_id: Submitting auditor; must own the audit.
            submission: The report.
            now: Submission time (defaults to the current UTC time).

        Returns:
            The outcome; ``status`` is partial when settlement or
            compensation persistence did not fully succeed.

        Raises:
            AuditNotFoundError, ProjectNotFoundError, MilestoneNotFoundError:
                Referenced entity missing.
            AuditorMismatchError: Caller is not the assigned auditor.
            InvalidAuditStateError: Audit is not in progress.
            MilestoneNotEligibleError: Milestone not completed or submitted.
            ReportValidationError: Quality gate failed.
            VersionConflictError: Project changed concurrently; retry.
        """
        now = now or datetime.now(timezone.utc)
        log = logger.bind(
            audit_id=submission.audit_id,
            milestone_id=submission.milestone_id,
            auditor_id=auditor_id,
        )

        audit, project = await self._load(auditor_id, submission, now)
        milestone = project.find_milestone(submission.milestone_id)
        if milestone is None:
            raise MilestoneNotFoundError(submission.milestone_id)

        try:
            self._gate.validate(submission, milestone, audit)
        except ReportValidationError as e:
            if self._metrics:
                self._metrics.record_report_rejection(e.rule.value)
            log.info("audit_report_rejected", rule=e.rule.value, reason=str(e))
            raise

        report_id = new_id("report")
        audit_status = (
            AuditStatus.PENDING_FOLLOW_UP
            if submission.follow_up_required
            else AuditStatus.COMPLETED
        )
        transition = await self._commit_outcome(
            auditor_id, submission, audit, project, report_id, audit_status, now
        )
        if self._metrics:
            self._metrics.record_report(submission.decision.value)
        log.info(
            "audit_report_accepted",
            report_id=report_id,
            decision=submission.decision.value,
            score=submission.score,
            milestone_status=transition.milestone.status.value,
            project_version=transition.project.version,
        )

        settlement = await self._settle(transition, audit, auditor_id, submission, now)
        compensation = await self._compensation.compensate(
            audit, submission.score, submission.report.time_spent_hours, now
        )

        await self._notify(
            audit, transition.project, auditor_id, report_id, submission, settlement, compensation
        )
        await self._record_statistics(audit, transition.project, auditor_id, submission, now)

        next_milestone = next(
            (m for m in transition.project.milestones if m.is_audit_eligible), None
        )
        result = SubmissionResult(
            report_id=report_id,
            audit_id=audit.id,
            milestone_id=milestone.id,
            decision=submission.decision.value,
            score=submission.score,
            milestone_status=transition.milestone.status.value,
            audit_status=audit_status.value,
            project_version=transition.project.version,
            settlement=settlement,
            compensation=compensation,
            next_milestone_id=next_milestone.id if next_milestone else None,
        )
        log.info(
            "audit_report_submitted",
            report_id=report_id,
            status=result.status.value,
            funds_released=result.funds_released,
            compensation_amount=compensation.amount,
            compensation_status=compensation.status.value,
        )
        return result

    async def _load(
        self, auditor_id: str, submission: ReportSubmission, now: datetime
    ) -> tuple[Audit, Project]:
        audit_doc = await self._store.get(collections.AUDITS, submission.audit_id)
        if audit_doc is None:
            raise AuditNotFoundError(submission.audit_id)
        audit = Audit.from_dict(audit_doc)
        if audit.auditor_id != auditor_id:
            raise AuditorMismatchError(audit.id, auditor_id)
        if audit.status != AuditStatus.IN_PROGRESS:
            raise InvalidAuditStateError(
                audit.id, audit.status.value, AuditStatus.IN_PROGRESS.value
            )
        if audit.deadline < now:
            logger.warning(
                "audit_report_after_deadline",
                audit_id=audit.id,
                deadline=audit.deadline.isoformat(),
            )

        project_doc = await self._store.get(collections.PROJECTS, audit.project_id)
        if project_doc is None:
            raise ProjectNotFoundError(audit.project_id)
        return audit, Project.from_dict(project_doc)

    async def _commit_outcome(
        self,
        auditor_id: str,
        submission: ReportSubmission,
        audit: Audit,
        project: Project,
        report_id: str,
        audit_status: AuditStatus,
        now: datetime,
    ) -> MilestoneTransition:
        try:
            async with self._store.transaction() as txn:
                transition = await self._settlement.transition_milestone(
                    txn,
                    project_id=project.id,
                    expected_version=project.version,
                    milestone_id=submission.milestone_id,
                    decision=submission.decision,
                    score=submission.score,
                    report_id=report_id,
                    auditor_id=auditor_id,
                    now=now,
                )
                current = await txn.get(collections.AUDITS, audit.id)
                if current is None:
                    raise AuditNotFoundError(audit.id)
                if current.get("status") != AuditStatus.IN_PROGRESS.value:
                    raise InvalidAuditStateError(
                        audit.id, str(current.get("status")), AuditStatus.IN_PROGRESS.value
                    )

                txn.set(
                    collections.AUDIT_REPORTS,
                    report_id,
                    self._report_document(report_id, auditor_id, audit, submission, now),
                )
                txn.update(
                    collections.AUDITS,
                    audit.id,
                    AuditPatch(
                        status=audit_status,
                        completed_at=now,
                        report_id=report_id,
                        final_decision=submission.decision,
                        final_score=submission.score,
                        follow_up_required=submission.follow_up_required,
                        updated_at=now,
                    ).to_fields(),
                )
        except TransactionConflictError as e:
            if e.collection == collections.PROJECTS:
                raise VersionConflictError(project.id, project.version) from e
            raise
        return transition

    @staticmethod
    def _report_document(
        report_id: str,
        auditor_id: str,
        audit: Audit,
        submission: ReportSubmission,
        now: datetime,
    ) -> dict[str, Any]:
        report = submission.report.to_dict()
        report["submitted_at"] = now
        return {
            "id": report_id,
            "audit_id": audit.id,
            "project_id": audit.project_id,
            "milestone_id": submission.milestone_id,
            "auditor_id": auditor_id,
            "decision": submission.decision.value,
            "overall_score": submission.score,
            "criteria": [c.to_dict() for c in submission.criteria],
            "report": report,
            "evidence": [e.to_dict() for e in submission.evidence],
            "follow_up_required": submission.follow_up_required,
            "follow_up_deadline": submission.follow_up_deadline,
            "additional_notes": submission.additional_notes,
            "review_status": "pending_review",
            "created_at": now,
            "submitted_at": now,
            "version": 1,
        }

    async def _settle(
        self,
        transition: MilestoneTransition,
        audit: Audit,
        auditor_id: str,
        submission: ReportSubmission,
        now: datetime,
    ) -> SettlementOutcome:
        if not self._settlement.should_settle(transition.project, submission.decision):
            return SettlementOutcome.not_run()
        try:
            return await self._settlement.settle_milestone(
                transition.project, transition.milestone, audit.id, auditor_id, now
            )
        except Exception as e:
            logger.error(
                "milestone_settlement_aborted",
                project_id=transition.project.id,
                milestone_id=transition.milestone.id,
                error=str(e),
            )
            return SettlementOutcome(status=OperationStatus.FAILED)

    async def _notify(
        self,
        audit: Audit,
        project: Project,
        auditor_id: str,
        report_id: str,
        submission: ReportSubmission,
        settlement: SettlementOutcome,
        compensation: CompensationOutcome,
    ) -> None:
        log = logger.bind(audit_id=audit.id, report_id=report_id)
        decision = submission.decision.value
        if project.creator_id:
            await send_notification(
                self._notifier,
                project.creator_id,
                "audit_report_submitted_creator",
                {
                    "project_id": project.id,
                    "project_title": project.title,
                    "milestone_id": submission.milestone_id,
                    "decision": decision,
                    "score": submission.score,
                    "funds_released": settlement.total_released,
                },
                log,
            )
        await notify_operators(
            self._store,
            self._notifier,
            "audit_report_submitted_admin",
            {
                "audit_id": audit.id,
                "report_id": report_id,
                "project_id": project.id,
                "project_title": project.title,
                "decision": decision,
                "score": submission.score,
                "requires_review": decision == "rejected" or submission.score < REVIEW_SCORE_BELOW,
            },
            log,
        )
        await send_notification(
            self._notifier,
            auditor_id,
            "audit_report_confirmation",
            {
                "report_id": report_id,
                "project_title": project.title,
                "compensation_amount": compensation.amount,
                "compensation_status": compensation.status.value,
            },
            log,
        )

    async def _record_statistics(
        self,
        audit: Audit,
        project: Project,
        auditor_id: str,
        submission: ReportSubmission,
        now: datetime,
    ) -> None:
        completion_hours = (
            round((now - audit.accepted_at).total_seconds() / 3600) if audit.accepted_at else 0
        )
        platform: dict[str, Any] = {
            "audits.total_completed": 1,
            "audits.score_total": submission.score,
            "audits.completion_hours_total": completion_hours,
        }
        if project.category:
            platform[f"categories.{project.category}.audits_completed"] = 1
        auditor = {
            **AuditorWorkloadDelta(current_audits=-1).to_increments(),
            "performance.completed_audits": 1,
            "stats.total_hours": submission.report.time_spent_hours,
            "stats.score_total": submission.score,
        }
        try:
            await self._store.increment(
                collections.PLATFORM_STATS, collections.GLOBAL_STATS_ID, platform
            )
            await self._store.increment(collections.AUDITORS, auditor_id, auditor)
        except Exception as e:
            logger.warning("audit_statistics_update_failed", audit_id=audit.id, error=str(e))
