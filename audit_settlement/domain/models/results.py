"""Result types returned by engine operations.

Expected partial outcomes (a failed transfer, an unpersisted compensation
record, a failed item in a batch run) are reported through these types
with an ``OperationStatus`` rather than raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from audit_settlement.domain.models.compensation import (
    CompensationBreakdown,
    CompensationStatus,
)


class OperationStatus(str, Enum):
    OK = "ok"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class EntryFailure:
    """A release-schedule entry that could not be settled."""

    contribution_id: str
    amount: int
    reason: str


@dataclass(frozen=True)
class SettlementOutcome:
    """Per-entry outcome of a settlement pass.

    Attributes:
        status: ok when every open entry settled (or none existed),
            partial when some did, failed when none did.
        contributions_considered: Held, confirmed contributions examined.
        entries_released: Entries transferred and marked released.
        entries_skipped: Contributions without an open entry for the milestone.
        total_released: Sum released (minor units).
        failures: Entries whose transfer or marking failed.
    """

    status: OperationStatus
    contributions_considered: int = 0
    entries_released: int = 0
    entries_skipped: int = 0
    total_released: int = 0
    failures: tuple[EntryFailure, ...] = ()

    @classmethod
    def not_run(cls) -> "SettlementOutcome":
        return cls(status=OperationStatus.OK)


@dataclass(frozen=True)
class CompensationOutcome:
    """Compensation as surfaced to the submitting auditor.

    When persistence fails ``status`` is ``pending`` but ``amount`` still
    carries the computed final amount.
    """

    status: CompensationStatus
    amount: int
    breakdown: CompensationBreakdown | None = None
    record_id: str | None = None

    @property
    def persisted(self) -> bool:
        return self.status == CompensationStatus.CALCULATED


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a report submission.

    Attributes:
        report_id: Stored report.
        audit_id: Audit reported on.
        milestone_id: Milestone transitioned.
        decision: Auditor decision.
        score: Overall score.
        milestone_status: New milestone status.
        audit_status: New audit status.
        project_version: Project version after the transition.
        settlement: Settlement outcome (``not_run`` when not applicable).
        compensation: Compensation outcome.
        next_milestone_id: Next milestone awaiting audit, if any.
    """

    report_id: str
    audit_id: str
    milestone_id: str
    decision: str
    score: float
    milestone_status: str
    audit_status: str
    project_version: int
    settlement: SettlementOutcome
    compensation: CompensationOutcome
    next_milestone_id: str | None = None

    @property
    def funds_released(self) -> int:
        return self.settlement.total_released

    @property
    def status(self) -> OperationStatus:
        if self.settlement.status != OperationStatus.OK or not self.compensation.persisted:
            return OperationStatus.PARTIAL
        return OperationStatus.OK


@dataclass
class QueueProcessingResult:
    """Counters for one audit queue run."""

    batch_id: str
    total_pending: int = 0
    assigned: int = 0
    escalated: int = 0
    auditors_notified: int = 0
    reminders_sent: int = 0
    expired: int = 0
    errors: int = 0
    assignments_by_complexity: dict[str, int] = field(default_factory=dict)
    escalation_reasons: dict[str, int] = field(default_factory=dict)

    def record_assignment(self, complexity: str) -> None:
        self.assigned += 1
        self.assignments_by_complexity[complexity] = (
            self.assignments_by_complexity.get(complexity, 0) + 1
        )

    def record_escalation(self, reason: str) -> None:
        self.escalated += 1
        self.escalation_reasons[reason] = self.escalation_reasons.get(reason, 0) + 1

    @property
    def status(self) -> OperationStatus:
        return OperationStatus.PARTIAL if self.errors else OperationStatus.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "status": self.status.value,
            "total_pending": self.total_pending,
            "assigned": self.assigned,
            "escalated": self.escalated,
            "auditors_notified": self.auditors_notified,
            "reminders_sent": self.reminders_sent,
            "expired": self.expired,
            "errors": self.errors,
            "assignments_by_complexity": dict(self.assignments_by_complexity),
            "escalation_reasons": dict(self.escalation_reasons),
        }


@dataclass(frozen=True)
class IntegrityReport:
    """Outcome of the interest integrity pass.

    Attributes:
        recorded_total: Platform running total of accrued interest.
        calculated_total: Sum of accrued interest over held escrow.
        discrepancy: Absolute difference.
        records_checked: Held escrow records summed.
        passed: Discrepancy within tolerance.
        ticket_id: Support ticket opened when it was not.
    """

    recorded_total: int
    calculated_total: int
    discrepancy: int
    records_checked: int
    passed: bool
    ticket_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "recorded_total": self.recorded_total,
            "calculated_total": self.calculated_total,
            "discrepancy": self.discrepancy,
            "records_checked": self.records_checked,
            "passed": self.passed,
            "ticket_id": self.ticket_id,
        }


@dataclass
class InterestRunResult:
    """Counters for one interest accrual run."""

    batch_id: str
    total_records: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    total_interest_accrued: int = 0
    failed_escrow_ids: list[str] = field(default_factory=list)
    integrity: IntegrityReport | None = None

    @property
    def status(self) -> OperationStatus:
        if self.errors and not self.processed:
            return OperationStatus.FAILED
        if self.errors:
            return OperationStatus.PARTIAL
        return OperationStatus.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "status": self.status.value,
            "total_records": self.total_records,
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": self.errors,
            "total_interest_accrued": self.total_interest_accrued,
            "failed_escrow_ids": list(self.failed_escrow_ids),
            "integrity": self.integrity.to_dict() if self.integrity else None,
        }
