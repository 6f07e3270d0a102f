"""Unit tests for ReportSubmissionService.

The service is taken from a fully wired engine so settlement and
compensation run for real against the in-memory stubs.
"""

from datetime import timedelta
from typing import Any

import pytest

from audit_settlement.application import collections
from audit_settlement.bootstrap import Engine
from audit_settlement.domain.errors import (
    AuditNotFoundError,
    AuditorMismatchError,
    InvalidAuditStateError,
    MilestoneNotEligibleError,
    MilestoneNotFoundError,
    ProjectNotFoundError,
    QualityRule,
    ReportValidationError,
    VersionConflictError,
)
from audit_settlement.domain.models import (
    AuditDecision,
    CompensationStatus,
    OperationStatus,
)
from audit_settlement.infrastructure.monitoring import EngineMetrics
from audit_settlement.infrastructure.stubs import (
    InMemoryDocumentStore,
    NotificationSenderStub,
    PaymentTransferStub,
)
from tests.helpers import (
    NOW,
    audit_doc,
    auditor_doc,
    contribution_doc,
    criteria,
    metric_value,
    operator_doc,
    project_doc,
    submission,
)


def _seed(
    store: InMemoryDocumentStore,
    project: dict[str, Any] | None = None,
    audit: dict[str, Any] | None = None,
) -> None:
    store.seed(collections.AUDITS, "audit-1", audit or audit_doc())
    store.seed(collections.PROJECTS, "proj-1", project or project_doc())
    store.seed(
        collections.AUDITORS,
        "auditor-1",
        auditor_doc(workload={"current_audits": 1, "pending_assignments": 0, "expired_assignments": 0}),
    )
    store.seed(collections.OPERATORS, "operator-1", operator_doc())
    for cid in ("c1", "c2"):
        store.seed(collections.CONTRIBUTIONS, cid, contribution_doc(cid))


class TestSubmitReport:
    @pytest.mark.asyncio
    async def test_approved_report_settles_and_compensates(
        self,
        engine: Engine,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        notifier: NotificationSenderStub,
        metrics: EngineMetrics,
    ) -> None:
        _seed(store)

        result = await engine.submissions.submit_report("auditor-1", submission(), NOW)

        assert result.status == OperationStatus.OK
        assert result.decision == "approved"
        assert result.milestone_status == "approved"
        assert result.audit_status == "completed"
        assert result.project_version == 4
        assert result.funds_released == 10_000
        assert result.settlement.entries_released == 2
        assert result.compensation.status == CompensationStatus.CALCULATED
        assert result.compensation.amount == 52_500
        assert result.next_milestone_id is None
        assert payments.total_transferred == 10_000

        audit = store.peek(collections.AUDITS, "audit-1")
        assert audit["status"] == "completed"
        assert audit["report_id"] == result.report_id
        assert audit["final_decision"] == "approved"
        assert audit["final_score"] == 85
        assert audit["completed_at"] == NOW

        report = store.peek(collections.AUDIT_REPORTS, result.report_id)
        assert report["overall_score"] == 85
        assert report["review_status"] == "pending_review"
        assert report["report"]["submitted_at"] == NOW
        assert len(report["criteria"]) == 3

        [creator] = notifier.of_kind("audit_report_submitted_creator")
        assert creator.recipient == "creator-1"
        assert creator.data["funds_released"] == 10_000
        [admin] = notifier.of_kind("audit_report_submitted_admin")
        assert admin.data["requires_review"] is False
        [confirmation] = notifier.of_kind("audit_report_confirmation")
        assert confirmation.recipient == "auditor-1"
        assert confirmation.data["compensation_amount"] == 52_500

        assert metric_value(metrics, "audit_reports_submitted_total", decision="approved") == 1

    @pytest.mark.asyncio
    async def test_excellent_early_report_earns_both_bonuses(
        self, engine: Engine, store: InMemoryDocumentStore
    ) -> None:
        _seed(store)
        report = submission(
            score=92, evaluations=criteria(("deliverables_quality", 95), ("budget_compliance", 88))
        )

        result = await engine.submissions.submit_report("auditor-1", report, NOW)

        assert result.milestone_status == "approved"
        assert result.funds_released == 10_000
        # 50000 x 1.1 x 1.05
        assert result.compensation.amount == 57_750

    @pytest.mark.asyncio
    async def test_statistics_recorded(self, engine: Engine, store: InMemoryDocumentStore) -> None:
        _seed(store)

        await engine.submissions.submit_report("auditor-1", submission(), NOW)

        platform = store.peek(collections.PLATFORM_STATS, collections.GLOBAL_STATS_ID)
        assert platform["audits"] == {
            "total_completed": 1,
            "score_total": 85,
            "completion_hours_total": 120,
        }
        assert platform["categories"]["environment"]["audits_completed"] == 1
        auditor = store.peek(collections.AUDITORS, "auditor-1")
        assert auditor["workload"]["current_audits"] == 0
        assert auditor["performance"]["completed_audits"] == 1
        assert auditor["stats"] == {"total_hours": 10, "score_total": 85}

    @pytest.mark.asyncio
    async def test_rejection_releases_nothing(
        self,
        engine: Engine,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        notifier: NotificationSenderStub,
    ) -> None:
        _seed(store)
        report = submission(
            decision=AuditDecision.REJECTED, score=40, weaknesses=("Wells not operational",)
        )

        result = await engine.submissions.submit_report("auditor-1", report, NOW)

        assert result.milestone_status == "rejected"
        assert result.settlement.status == OperationStatus.OK
        assert result.funds_released == 0
        assert result.compensation.amount == 47_250
        assert payments.attempts == []
        [admin] = notifier.of_kind("audit_report_submitted_admin")
        assert admin.data["requires_review"] is True

    @pytest.mark.asyncio
    async def test_manual_release_project_is_not_settled(
        self, engine: Engine, store: InMemoryDocumentStore, payments: PaymentTransferStub
    ) -> None:
        _seed(store, project=project_doc(auto_release=False))

        result = await engine.submissions.submit_report("auditor-1", submission(), NOW)

        assert result.milestone_status == "approved"
        assert result.funds_released == 0
        assert payments.attempts == []

    @pytest.mark.asyncio
    async def test_follow_up_leaves_audit_pending(
        self, engine: Engine, store: InMemoryDocumentStore
    ) -> None:
        _seed(store)

        result = await engine.submissions.submit_report(
            "auditor-1", submission(follow_up_required=True), NOW
        )

        assert result.audit_status == "pending_follow_up"
        assert store.peek(collections.AUDITS, "audit-1")["status"] == "pending_follow_up"

    @pytest.mark.asyncio
    async def test_next_milestone_reported(
        self, engine: Engine, store: InMemoryDocumentStore
    ) -> None:
        project = project_doc()
        project["milestones"][1]["status"] = "submitted"
        _seed(store, project=project)

        result = await engine.submissions.submit_report("auditor-1", submission(), NOW)

        assert result.next_milestone_id == "ms-2"

    @pytest.mark.asyncio
    async def test_partial_settlement_still_commits_decision(
        self, engine: Engine, store: InMemoryDocumentStore, payments: PaymentTransferStub
    ) -> None:
        _seed(store)
        payments.fail_for("c2")

        result = await engine.submissions.submit_report("auditor-1", submission(), NOW)

        assert result.status == OperationStatus.PARTIAL
        assert result.settlement.status == OperationStatus.PARTIAL
        assert result.funds_released == 5_000
        assert store.peek(collections.AUDITS, "audit-1")["status"] == "completed"

    @pytest.mark.asyncio
    async def test_settlement_abort_reported_as_failed(
        self, engine: Engine, store: InMemoryDocumentStore
    ) -> None:
        _seed(store)
        store.fail_next("query", collection=collections.CONTRIBUTIONS)

        result = await engine.submissions.submit_report("auditor-1", submission(), NOW)

        assert result.settlement.status == OperationStatus.FAILED
        assert result.status == OperationStatus.PARTIAL
        assert store.peek(collections.PROJECTS, "proj-1")["version"] == 4

    @pytest.mark.asyncio
    async def test_unpersisted_compensation_is_pending(
        self, engine: Engine, store: InMemoryDocumentStore
    ) -> None:
        _seed(store)
        store.fail_next("commit", collection=collections.AUDITOR_COMPENSATIONS)

        result = await engine.submissions.submit_report("auditor-1", submission(), NOW)

        assert result.compensation.status == CompensationStatus.PENDING
        assert result.compensation.amount == 52_500
        assert result.status == OperationStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_statistics_failure_does_not_fail_submission(
        self, engine: Engine, store: InMemoryDocumentStore
    ) -> None:
        _seed(store)
        store.fail_next("increment", collection=collections.PLATFORM_STATS)

        result = await engine.submissions.submit_report("auditor-1", submission(), NOW)

        assert result.status == OperationStatus.OK


class TestSubmitReportRejections:
    @pytest.mark.asyncio
    async def test_unknown_audit(self, engine: Engine) -> None:
        with pytest.raises(AuditNotFoundError):
            await engine.submissions.submit_report("auditor-1", submission(), NOW)

    @pytest.mark.asyncio
    async def test_other_auditor(self, engine: Engine, store: InMemoryDocumentStore) -> None:
        _seed(store)
        with pytest.raises(AuditorMismatchError):
            await engine.submissions.submit_report("auditor-2", submission(), NOW)

    @pytest.mark.asyncio
    async def test_audit_already_completed(
        self, engine: Engine, store: InMemoryDocumentStore
    ) -> None:
        _seed(store, audit=audit_doc(status="completed"))
        with pytest.raises(InvalidAuditStateError):
            await engine.submissions.submit_report("auditor-1", submission(), NOW)

    @pytest.mark.asyncio
    async def test_project_missing(self, engine: Engine, store: InMemoryDocumentStore) -> None:
        store.seed(collections.AUDITS, "audit-1", audit_doc())
        with pytest.raises(ProjectNotFoundError):
            await engine.submissions.submit_report("auditor-1", submission(), NOW)

    @pytest.mark.asyncio
    async def test_milestone_missing(self, engine: Engine, store: InMemoryDocumentStore) -> None:
        _seed(store)
        with pytest.raises(MilestoneNotFoundError):
            await engine.submissions.submit_report(
                "auditor-1", submission(milestone_id="ms-9"), NOW
            )

    @pytest.mark.asyncio
    async def test_milestone_not_ready(
        self, engine: Engine, store: InMemoryDocumentStore
    ) -> None:
        _seed(store, project=project_doc(milestone_status="pending"))
        with pytest.raises(MilestoneNotEligibleError):
            await engine.submissions.submit_report("auditor-1", submission(), NOW)

    @pytest.mark.asyncio
    async def test_quality_gate_failure_writes_nothing(
        self,
        engine: Engine,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        metrics: EngineMetrics,
    ) -> None:
        _seed(store)

        with pytest.raises(ReportValidationError) as exc_info:
            await engine.submissions.submit_report("auditor-1", submission(score=60), NOW)

        assert exc_info.value.rule == QualityRule.APPROVAL_SCORE
        assert store.commit_count == 0
        assert store.peek(collections.PROJECTS, "proj-1")["version"] == 3
        assert store.peek(collections.AUDITS, "audit-1")["status"] == "in_progress"
        assert payments.attempts == []
        assert metric_value(metrics, "audit_reports_rejected_total", rule="approval_score") == 1

    @pytest.mark.asyncio
    async def test_concurrent_project_change_is_version_conflict(
        self,
        engine: Engine,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
    ) -> None:
        _seed(store)

        async def concurrent_writer(s: InMemoryDocumentStore) -> None:
            await s.update(collections.PROJECTS, "proj-1", {"version": 4})

        store.before_next_commit(concurrent_writer)

        with pytest.raises(VersionConflictError) as exc_info:
            await engine.submissions.submit_report("auditor-1", submission(), NOW)

        assert exc_info.value.retryable is True
        assert store.peek(collections.AUDITS, "audit-1")["status"] == "in_progress"
        assert store.documents(collections.AUDIT_REPORTS) == {}
        assert payments.attempts == []

    @pytest.mark.asyncio
    async def test_late_report_still_accepted(
        self, engine: Engine, store: InMemoryDocumentStore
    ) -> None:
        _seed(store, audit=audit_doc(deadline=NOW - timedelta(days=1)))

        result = await engine.submissions.submit_report("auditor-1", submission(), NOW)

        assert result.audit_status == "completed"
        assert result.compensation.amount == 50_000
