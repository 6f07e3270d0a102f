"""Unit tests for domain models: document round trips and derived values."""

from datetime import timedelta

import pytest

from audit_settlement.domain.models import (
    Audit,
    AuditDecision,
    AuditorProfile,
    AuditorWorkloadDelta,
    AuditPriority,
    AuditRequest,
    CompensationBreakdown,
    CompensationOutcome,
    CompensationRecord,
    CompensationStatus,
    Contribution,
    EntryFailure,
    EscalationReason,
    EscrowRecord,
    InterestRunResult,
    MilestoneStatus,
    OperationStatus,
    Project,
    QueueProcessingResult,
    SettlementOutcome,
    SubmissionResult,
)
from tests.helpers import (
    NOW,
    audit_doc,
    audit_request,
    auditor_doc,
    contribution_doc,
    escrow_doc,
    project_doc,
)


class TestAuditRequest:
    def test_priority_rank_stored_with_document(self) -> None:
        document = audit_request(priority=AuditPriority.URGENT).to_dict()
        assert document["priority"] == "urgent"
        assert document["priority_rank"] == 0

    def test_rank_order(self) -> None:
        ordered = sorted(AuditPriority, key=lambda p: p.rank)
        assert ordered == [
            AuditPriority.URGENT,
            AuditPriority.HIGH,
            AuditPriority.MEDIUM,
            AuditPriority.LOW,
        ]

    def test_from_dict_accepts_iso_strings(self) -> None:
        document = audit_request().to_dict()
        document["deadline"] = "2026-03-16T12:00:00Z"
        request = AuditRequest.from_dict(document)
        assert request.deadline == NOW + timedelta(days=14)
        assert request.required_qualifications == ("financial_audit",)

    def test_missing_deadline_is_unreadable(self) -> None:
        document = audit_request().to_dict()
        del document["deadline"]
        with pytest.raises(ValueError):
            AuditRequest.from_dict(document)


class TestAuditorProfile:
    def test_round_trip(self) -> None:
        profile = AuditorProfile.from_dict(auditor_doc(category_experience={"environment": 4}))
        assert profile.to_dict()["category_experience"] == {"environment": 4}
        assert AuditorProfile.from_dict(profile.to_dict()) == profile

    def test_capacity_falls_back_to_default(self) -> None:
        profile = AuditorProfile.from_dict(auditor_doc(max_concurrent_audits=None))
        assert profile.capacity(3) == 3
        assert AuditorProfile.from_dict(auditor_doc(max_concurrent_audits=5)).capacity(3) == 5

    def test_workload_delta_omits_untouched_counters(self) -> None:
        delta = AuditorWorkloadDelta(current_audits=1, pending_assignments=-1)
        assert delta.to_increments() == {
            "workload.current_audits": 1,
            "workload.pending_assignments": -1,
        }


class TestAudit:
    def test_required_criteria(self) -> None:
        audit = Audit.from_dict(audit_doc())
        assert audit.required_criteria == ["deliverables_quality", "budget_compliance"]

    def test_round_trip(self) -> None:
        audit = Audit.from_dict(audit_doc())
        assert Audit.from_dict(audit.to_dict()) == audit


class TestProject:
    def test_find_and_replace_milestone_keeps_order(self) -> None:
        project = Project.from_dict(project_doc())
        milestone = project.find_milestone("ms-1")
        assert milestone is not None
        assert milestone.is_audit_eligible

        updated = milestone.with_audit_outcome(
            status=MilestoneStatus.APPROVED,
            decision="approved",
            score=85,
            report_id="report-1",
            auditor_id="auditor-1",
            completed_at=NOW,
        )
        milestones = project.replace_milestone(updated)
        assert [m.id for m in milestones] == ["ms-1", "ms-2"]
        assert milestones[0].status == MilestoneStatus.APPROVED
        assert milestones[0].audit_report_id == "report-1"
        assert milestones[1] == project.milestones[1]

    def test_unknown_milestone(self) -> None:
        assert Project.from_dict(project_doc()).find_milestone("ms-9") is None

    @pytest.mark.parametrize("status", ["pending", "approved", "rejected", "needs_revision"])
    def test_only_completed_or_submitted_are_eligible(self, status: str) -> None:
        project = Project.from_dict(project_doc(milestone_status=status))
        assert not project.milestones[0].is_audit_eligible

    def test_decision_maps_to_milestone_status(self) -> None:
        assert AuditDecision.APPROVED.milestone_status == MilestoneStatus.APPROVED
        assert AuditDecision.REJECTED.milestone_status == MilestoneStatus.REJECTED
        assert AuditDecision.NEEDS_REVISION.milestone_status == MilestoneStatus.NEEDS_REVISION


class TestEscrow:
    def test_open_entry_skips_released_slices(self) -> None:
        contribution = Contribution.from_dict(
            contribution_doc("c-1", schedule=[("ms-1", 100, True), ("ms-1", 200, False)])
        )
        entry = contribution.open_entry_for("ms-1")
        assert entry is not None
        assert entry.amount == 200
        assert entry.path == "escrow.release_schedule.1"

    def test_no_open_entry(self) -> None:
        contribution = Contribution.from_dict(contribution_doc("c-1", schedule=[("ms-2", 100, False)]))
        assert contribution.open_entry_for("ms-1") is None

    def test_accrual_starts_at_creation_until_first_calculation(self) -> None:
        fresh = EscrowRecord.from_dict(escrow_doc("e-1", created_at=NOW - timedelta(days=3)))
        assert fresh.accrual_start == NOW - timedelta(days=3)
        calculated = EscrowRecord.from_dict(
            escrow_doc("e-1", last_interest_calculation=NOW - timedelta(days=1))
        )
        assert calculated.accrual_start == NOW - timedelta(days=1)


class TestTickets:
    @pytest.mark.parametrize("reason", list(EscalationReason))
    def test_every_reason_suggests_actions(self, reason: EscalationReason) -> None:
        assert reason.suggested_actions


class TestCompensationRecord:
    def test_bonuses_derived_from_multipliers(self) -> None:
        record = CompensationRecord(
            id="comp-1",
            audit_id="audit-1",
            auditor_id="auditor-1",
            project_id="proj-1",
            base_amount=50_000,
            final_amount=49_500,
            quality_multiplier=0.9,
            timing_multiplier=1.1,
            time_spent_hours=10,
            hourly_rate=4_950,
            created_at=NOW,
            due_date=NOW + timedelta(days=7),
        )
        document = record.to_dict()
        assert document["quality_bonus"] == -0.1
        assert document["timing_bonus"] == 0.1
        assert document["status"] == "pending_payment"


def _compensation(status: CompensationStatus) -> CompensationOutcome:
    return CompensationOutcome(
        status=status,
        amount=50_000,
        breakdown=CompensationBreakdown(50_000, 1.0, 1.0, 50_000, 0),
    )


def _result(settlement: SettlementOutcome, compensation: CompensationOutcome) -> SubmissionResult:
    return SubmissionResult(
        report_id="report-1",
        audit_id="audit-1",
        milestone_id="ms-1",
        decision="approved",
        score=85,
        milestone_status="approved",
        audit_status="completed",
        project_version=4,
        settlement=settlement,
        compensation=compensation,
    )


class TestResults:
    def test_submission_ok_when_everything_settled(self) -> None:
        settled = SettlementOutcome(status=OperationStatus.OK, entries_released=2, total_released=900)
        result = _result(settled, _compensation(CompensationStatus.CALCULATED))
        assert result.status == OperationStatus.OK
        assert result.funds_released == 900

    def test_submission_partial_on_failed_transfer(self) -> None:
        partial = SettlementOutcome(
            status=OperationStatus.PARTIAL,
            failures=(EntryFailure("c-2", 400, "declined"),),
        )
        result = _result(partial, _compensation(CompensationStatus.CALCULATED))
        assert result.status == OperationStatus.PARTIAL

    def test_submission_partial_on_unpersisted_compensation(self) -> None:
        result = _result(SettlementOutcome.not_run(), _compensation(CompensationStatus.PENDING))
        assert result.status == OperationStatus.PARTIAL
        assert result.funds_released == 0

    def test_queue_result_counters(self) -> None:
        result = QueueProcessingResult(batch_id="b-1")
        result.record_assignment("standard")
        result.record_assignment("standard")
        result.record_escalation("no_qualified_auditors")
        document = result.to_dict()
        assert document["status"] == "ok"
        assert document["assigned"] == 2
        assert document["assignments_by_complexity"] == {"standard": 2}
        assert document["escalation_reasons"] == {"no_qualified_auditors": 1}
        result.errors = 1
        assert result.status == OperationStatus.PARTIAL

    def test_interest_result_status(self) -> None:
        result = InterestRunResult(batch_id="b-1")
        assert result.status == OperationStatus.OK
        result.errors = 1
        assert result.status == OperationStatus.FAILED
        result.processed = 3
        assert result.status == OperationStatus.PARTIAL
        assert result.to_dict()["integrity"] is None
