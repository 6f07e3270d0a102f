"""Unit tests for MilestoneSettlementService.

Transition tests run inside a real store transaction; settlement tests
drive the payment stub's failure injection.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Mapping

import pytest

from audit_settlement.application import collections
from audit_settlement.application.services import MilestoneSettlementService
from audit_settlement.config import SettlementConfig
from audit_settlement.domain.errors import (
    MilestoneNotEligibleError,
    MilestoneNotFoundError,
    ProjectNotFoundError,
    TransactionConflictError,
    VersionConflictError,
)
from audit_settlement.domain.models import (
    AuditDecision,
    MilestoneStatus,
    OperationStatus,
    Project,
)
from audit_settlement.infrastructure.monitoring import EngineMetrics
from audit_settlement.infrastructure.stubs import InMemoryDocumentStore, PaymentTransferStub
from tests.helpers import NOW, contribution_doc, metric_value, project_doc


@pytest.fixture
def service(
    store: InMemoryDocumentStore, payments: PaymentTransferStub, metrics: EngineMetrics
) -> MilestoneSettlementService:
    return MilestoneSettlementService(store, payments, SettlementConfig(batch_size=2), metrics)


def _approved_project(**overrides) -> Project:
    return Project.from_dict(project_doc(milestone_status="approved", **overrides))


async def _transition(
    store: InMemoryDocumentStore,
    service: MilestoneSettlementService,
    expected_version: int = 3,
    milestone_id: str = "ms-1",
    decision: AuditDecision = AuditDecision.APPROVED,
):
    async with store.transaction() as txn:
        return await service.transition_milestone(
            txn,
            "proj-1",
            expected_version,
            milestone_id,
            decision,
            88,
            "report-1",
            "auditor-1",
            NOW,
        )


class TestTransitionMilestone:
    @pytest.mark.asyncio
    async def test_writes_outcome_and_bumps_version(
        self, store: InMemoryDocumentStore, service: MilestoneSettlementService
    ) -> None:
        store.seed(collections.PROJECTS, "proj-1", project_doc())

        transition = await _transition(store, service)

        assert transition.project.version == 4
        assert transition.milestone.status == MilestoneStatus.APPROVED

        project = store.peek(collections.PROJECTS, "proj-1")
        assert project["version"] == 4
        milestone = project["milestones"][0]
        assert milestone["status"] == "approved"
        assert milestone["audit_status"] == "completed"
        assert milestone["audit_score"] == 88
        assert milestone["audit_decision"] == "approved"
        assert milestone["audit_report_id"] == "report-1"
        assert milestone["audited_by"] == "auditor-1"
        assert milestone["audit_completed_at"] == NOW
        assert project["milestones"][1]["status"] == "pending"
        assert project["audit"]["last_milestone_audit"] == {
            "milestone_id": "ms-1",
            "decision": "approved",
            "score": 88,
            "completed_at": NOW,
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "decision,expected",
        [
            (AuditDecision.REJECTED, "rejected"),
            (AuditDecision.NEEDS_REVISION, "needs_revision"),
        ],
    )
    async def test_decision_maps_to_milestone_status(
        self,
        store: InMemoryDocumentStore,
        service: MilestoneSettlementService,
        decision: AuditDecision,
        expected: str,
    ) -> None:
        store.seed(collections.PROJECTS, "proj-1", project_doc())

        await _transition(store, service, decision=decision)

        assert store.peek(collections.PROJECTS, "proj-1")["milestones"][0]["status"] == expected

    @pytest.mark.asyncio
    async def test_submitted_milestone_is_eligible(
        self, store: InMemoryDocumentStore, service: MilestoneSettlementService
    ) -> None:
        store.seed(collections.PROJECTS, "proj-1", project_doc(milestone_status="submitted"))

        transition = await _transition(store, service)

        assert transition.milestone.status == MilestoneStatus.APPROVED

    @pytest.mark.asyncio
    async def test_stale_version_rejected_without_writing(
        self, store: InMemoryDocumentStore, service: MilestoneSettlementService
    ) -> None:
        store.seed(collections.PROJECTS, "proj-1", project_doc(version=5))

        with pytest.raises(VersionConflictError) as exc_info:
            await _transition(store, service, expected_version=3)

        assert exc_info.value.actual_version == 5
        assert store.peek(collections.PROJECTS, "proj-1")["version"] == 5
        assert store.writes_to(collections.PROJECTS) == []

    @pytest.mark.asyncio
    async def test_missing_project(
        self, store: InMemoryDocumentStore, service: MilestoneSettlementService
    ) -> None:
        with pytest.raises(ProjectNotFoundError):
            await _transition(store, service)

    @pytest.mark.asyncio
    async def test_missing_milestone(
        self, store: InMemoryDocumentStore, service: MilestoneSettlementService
    ) -> None:
        store.seed(collections.PROJECTS, "proj-1", project_doc())
        with pytest.raises(MilestoneNotFoundError):
            await _transition(store, service, milestone_id="ms-9")

    @pytest.mark.asyncio
    async def test_pending_milestone_not_eligible(
        self, store: InMemoryDocumentStore, service: MilestoneSettlementService
    ) -> None:
        store.seed(collections.PROJECTS, "proj-1", project_doc(milestone_status="pending"))
        with pytest.raises(MilestoneNotEligibleError):
            await _transition(store, service)

    @pytest.mark.asyncio
    async def test_concurrent_project_write_aborts_commit(
        self, store: InMemoryDocumentStore, service: MilestoneSettlementService
    ) -> None:
        store.seed(collections.PROJECTS, "proj-1", project_doc())

        async def concurrent_writer(s: InMemoryDocumentStore) -> None:
            await s.update(collections.PROJECTS, "proj-1", {"version": 4})

        store.before_next_commit(concurrent_writer)

        with pytest.raises(TransactionConflictError):
            await _transition(store, service)

        project = store.peek(collections.PROJECTS, "proj-1")
        assert project["version"] == 4
        assert project["milestones"][0]["status"] == "completed"


class TestShouldSettle:
    def test_only_approved_with_auto_release(self, service: MilestoneSettlementService) -> None:
        auto = _approved_project()
        manual = _approved_project(settings={"auto_release_on_audit_approval": False})

        assert service.should_settle(auto, AuditDecision.APPROVED) is True
        assert service.should_settle(manual, AuditDecision.APPROVED) is False
        assert service.should_settle(auto, AuditDecision.REJECTED) is False
        assert service.should_settle(auto, AuditDecision.NEEDS_REVISION) is False


class TestSettleMilestone:
    @pytest.mark.asyncio
    async def test_releases_every_open_entry(
        self,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        metrics: EngineMetrics,
        service: MilestoneSettlementService,
    ) -> None:
        for cid in ("c1", "c2", "c3"):
            store.seed(collections.CONTRIBUTIONS, cid, contribution_doc(cid))
        store.seed(
            collections.CONTRIBUTIONS,
            "c-done",
            contribution_doc("c-done", schedule=(("ms-1", 5_000, True), ("ms-2", 5_000, False))),
        )
        store.seed(collections.CONTRIBUTIONS, "c-pending", contribution_doc("c-pending", status="pending"))
        store.seed(collections.CONTRIBUTIONS, "c-out", contribution_doc("c-out", held=False))
        store.seed(collections.CONTRIBUTIONS, "c-other", contribution_doc("c-other", project_id="proj-2"))
        project = _approved_project()

        outcome = await service.settle_milestone(
            project, project.find_milestone("ms-1"), "audit-1", "auditor-1", NOW
        )

        assert outcome.status == OperationStatus.OK
        assert outcome.contributions_considered == 4
        assert outcome.entries_released == 3
        assert outcome.entries_skipped == 1
        assert outcome.total_released == 15_000
        assert outcome.failures == ()

        assert payments.total_transferred == 15_000
        transfer = payments.transfers[0]
        assert transfer.destination == "acct_creator"
        assert transfer.currency == "eur"
        assert transfer.metadata["milestone_id"] == "ms-1"
        assert transfer.metadata["audit_id"] == "audit-1"
        assert transfer.metadata["auto_release"] == "true"
        assert transfer.metadata["description"] == (
            "Automatic escrow release: Clean Water - Milestone: Wells dug"
        )

        schedule = store.peek(collections.CONTRIBUTIONS, "c1")["escrow"]["release_schedule"]
        assert schedule[0]["released"] is True
        assert schedule[0]["released_at"] == NOW
        assert schedule[0]["released_by"] == "auditor-1"
        assert schedule[0]["release_reason"] == "audit_approval"
        assert schedule[0]["transfer_id"].startswith("tr_")
        assert schedule[1]["released"] is False

        assert metric_value(metrics, "settlement_transfers_total", outcome="released") == 3
        assert metric_value(metrics, "settlement_funds_released_cents_total") == 15_000

    @pytest.mark.asyncio
    async def test_one_declined_transfer_is_partial(
        self,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        metrics: EngineMetrics,
        service: MilestoneSettlementService,
    ) -> None:
        for cid in ("c1", "c2", "c3"):
            store.seed(collections.CONTRIBUTIONS, cid, contribution_doc(cid))
        payments.fail_for("c2")
        project = _approved_project()

        outcome = await service.settle_milestone(
            project, project.find_milestone("ms-1"), "audit-1", "auditor-1", NOW
        )

        assert outcome.status == OperationStatus.PARTIAL
        assert outcome.entries_released == 2
        assert outcome.total_released == 10_000
        [failure] = outcome.failures
        assert failure.contribution_id == "c2"
        assert failure.amount == 5_000
        assert "declined" in failure.reason

        c2 = store.peek(collections.CONTRIBUTIONS, "c2")["escrow"]["release_schedule"][0]
        assert c2["released"] is False
        assert metric_value(metrics, "settlement_transfers_total", outcome="failed") == 1

    @pytest.mark.asyncio
    async def test_every_transfer_failing(
        self,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        service: MilestoneSettlementService,
    ) -> None:
        for cid in ("c1", "c2"):
            store.seed(collections.CONTRIBUTIONS, cid, contribution_doc(cid))
        payments.fail_next(count=2)
        project = _approved_project()

        outcome = await service.settle_milestone(
            project, project.find_milestone("ms-1"), "audit-1", "auditor-1", NOW
        )

        assert outcome.status == OperationStatus.FAILED
        assert outcome.total_released == 0
        assert len(outcome.failures) == 2

    @pytest.mark.asyncio
    async def test_no_destination_issues_no_transfer(
        self,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        service: MilestoneSettlementService,
    ) -> None:
        store.seed(collections.CONTRIBUTIONS, "c1", contribution_doc("c1"))
        project = _approved_project(payout_destination=None)

        outcome = await service.settle_milestone(
            project, project.find_milestone("ms-1"), "audit-1", "auditor-1", NOW
        )

        assert outcome.status == OperationStatus.FAILED
        assert outcome.failures[0].reason == "no payout destination"
        assert payments.attempts == []

    @pytest.mark.asyncio
    async def test_falls_back_to_default_destination(
        self,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        metrics: EngineMetrics,
    ) -> None:
        service = MilestoneSettlementService(
            store,
            payments,
            SettlementConfig(default_payout_destination="acct_platform"),
            metrics,
        )
        store.seed(collections.CONTRIBUTIONS, "c1", contribution_doc("c1"))
        project = _approved_project(payout_destination=None)

        await service.settle_milestone(
            project, project.find_milestone("ms-1"), "audit-1", "auditor-1", NOW
        )

        assert payments.transfers[0].destination == "acct_platform"

    @pytest.mark.asyncio
    async def test_second_settlement_releases_nothing(
        self,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        service: MilestoneSettlementService,
    ) -> None:
        for cid in ("c1", "c2"):
            store.seed(collections.CONTRIBUTIONS, cid, contribution_doc(cid))
        project = _approved_project()
        milestone = project.find_milestone("ms-1")

        await service.settle_milestone(project, milestone, "audit-1", "auditor-1", NOW)
        again = await service.settle_milestone(project, milestone, "audit-1", "auditor-1", NOW)

        assert again.status == OperationStatus.OK
        assert again.entries_released == 0
        assert again.entries_skipped == 2
        assert len(payments.transfers) == 2

    @pytest.mark.asyncio
    async def test_entry_released_concurrently_reports_duplicate(
        self,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        metrics: EngineMetrics,
        service: MilestoneSettlementService,
    ) -> None:
        store.seed(collections.CONTRIBUTIONS, "c1", contribution_doc("c1"))

        async def concurrent_release(s: InMemoryDocumentStore) -> None:
            await s.update(
                collections.CONTRIBUTIONS,
                "c1",
                {
                    "escrow.release_schedule.0.released": True,
                    "escrow.release_schedule.0.transfer_id": "tr_other",
                },
            )

        store.on_next_transaction(concurrent_release)
        project = _approved_project()

        outcome = await service.settle_milestone(
            project, project.find_milestone("ms-1"), "audit-1", "auditor-1", NOW
        )

        assert outcome.failures[0].reason == "entry already released"
        entry = store.peek(collections.CONTRIBUTIONS, "c1")["escrow"]["release_schedule"][0]
        assert entry["transfer_id"] == "tr_other"
        assert len(payments.transfers) == 1
        assert metric_value(metrics, "settlement_transfers_total", outcome="duplicate") == 1

    @pytest.mark.asyncio
    async def test_marking_failure_after_transfer_is_reported(
        self,
        store: InMemoryDocumentStore,
        payments: PaymentTransferStub,
        metrics: EngineMetrics,
        service: MilestoneSettlementService,
    ) -> None:
        store.seed(collections.CONTRIBUTIONS, "c1", contribution_doc("c1"))
        store.fail_next("commit", collection=collections.CONTRIBUTIONS)
        project = _approved_project()

        outcome = await service.settle_milestone(
            project, project.find_milestone("ms-1"), "audit-1", "auditor-1", NOW
        )

        assert outcome.status == OperationStatus.FAILED
        assert len(payments.transfers) == 1
        entry = store.peek(collections.CONTRIBUTIONS, "c1")["escrow"]["release_schedule"][0]
        assert entry["released"] is False
        assert metric_value(metrics, "settlement_transfers_total", outcome="unrecorded") == 1

    @pytest.mark.asyncio
    async def test_no_contributions(
        self, payments: PaymentTransferStub, service: MilestoneSettlementService
    ) -> None:
        project = _approved_project()

        outcome = await service.settle_milestone(
            project, project.find_milestone("ms-1"), "audit-1", "auditor-1", NOW
        )

        assert outcome.status == OperationStatus.OK
        assert outcome.contributions_considered == 0
        assert payments.attempts == []

    @pytest.mark.asyncio
    async def test_transfers_in_flight_bounded_by_batch_size(
        self, store: InMemoryDocumentStore, metrics: EngineMetrics
    ) -> None:
        payments = _GatedPayments()
        service = MilestoneSettlementService(
            store, payments, SettlementConfig(batch_size=2), metrics
        )
        for cid in ("c1", "c2", "c3", "c4", "c5"):
            store.seed(collections.CONTRIBUTIONS, cid, contribution_doc(cid))
        project = _approved_project()

        task = asyncio.create_task(
            service.settle_milestone(
                project, project.find_milestone("ms-1"), "audit-1", "auditor-1", NOW
            )
        )
        for _ in range(20):
            await asyncio.sleep(0)
        assert payments.in_flight == 2
        payments.release.set()
        outcome = await task

        assert outcome.entries_released == 5
        assert payments.peak == 2
        assert payments.in_flight == 0


@dataclass
class _GatedPayments(PaymentTransferStub):
    """Holds each transfer until released and tracks how many overlap."""

    release: asyncio.Event = field(default_factory=asyncio.Event)
    in_flight: int = 0
    peak: int = 0

    async def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        metadata: Mapping[str, str],
    ) -> str:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await self.release.wait()
            return await super().create_transfer(amount, currency, destination, metadata)
        finally:
            self.in_flight -= 1
