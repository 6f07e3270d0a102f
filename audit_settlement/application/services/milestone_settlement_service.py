"""Milestone transition and escrow settlement.

Two steps with different consistency guarantees:

1. Transition: the milestone's audit outcome, the project's
   ``audit.last_milestone_audit`` summary and ``version + 1`` are written
   inside the caller's transaction, after checking the project version
   the caller read. A stale version aborts with VersionConflictError.
2. Settlement (approved milestones with auto-release only): every
   confirmed, escrow-held contribution of the project releases its open
   schedule entry for the milestone through the payment service. Entries
   are settled in bounded batches; each entry succeeds or fails alone.

Constraints:
- A transfer failure never rolls back the milestone approval
- An entry is marked released only after its transfer succeeded, inside
  a transaction that re-checks the released flag
- No cross-contribution transaction; partial success is reported

Developer Golden Rules:
1. Re-read the contribution before issuing a transfer
2. Never issue a transfer for an entry already marked released
3. Gather a whole batch before looking at failures
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from structlog import get_logger

from audit_settlement.application import collections
from audit_settlement.application.ports.document_store import (
    DocumentStoreProtocol,
    DocumentTransactionProtocol,
    FieldFilter,
    FilterOp,
)
from audit_settlement.application.ports.payment_transfer import PaymentTransferProtocol
from audit_settlement.config import SettlementConfig
from audit_settlement.domain.errors import (
    MilestoneNotEligibleError,
    MilestoneNotFoundError,
    ProjectNotFoundError,
    VersionConflictError,
)
from audit_settlement.domain.models import (
    AuditDecision,
    Contribution,
    ContributionStatus,
    EntryFailure,
    Milestone,
    MilestoneAuditSummary,
    OperationStatus,
    Project,
    ProjectPatch,
    ReleaseScheduleEntry,
    SettlementOutcome,
)
from audit_settlement.infrastructure.monitoring import EngineMetrics

logger = get_logger(__name__)

RELEASE_REASON_AUDIT_APPROVAL = "audit_approval"


@dataclass(frozen=True)
class MilestoneTransition:
    """Result of a buffered milestone transition.

    Attributes:
        project: Project as it will be after commit (version incremented).
        milestone: Milestone carrying the audit outcome.
    """

    project: Project
    milestone: Milestone


@dataclass(frozen=True)
class _EntryResult:
    contribution_id: str
    released: int = 0
    skipped: bool = False
    failure: str | None = None
    amount: int = 0


class MilestoneSettlementService:
    """Transitions milestones and releases escrowed funds."""

    def __init__(
        self,
        store: DocumentStoreProtocol,
        payments: PaymentTransferProtocol,
        config: SettlementConfig,
        metrics: EngineMetrics | None = None,
    ) -> None:
        """Initialize the settlement service.

        Args:
            store: Document store for projects and contributions.
            payments: Payment transfer collaborator.
            config: Batch size and default payout destination.
            metrics: Optional Prometheus metrics.
        """
        self._store = store
        self._payments = payments
        self._config = config
        self._metrics = metrics

    # Transition

    async def transition_milestone(
        self,
        txn: DocumentTransactionProtocol,
        project_id: str,
        expected_version: int,
        milestone_id: str,
        decision: AuditDecision,
        score: float,
        report_id: str,
        auditor_id: str,
        now: datetime,
    ) -> MilestoneTransition:
        """Buffer the milestone outcome inside ``txn``.

        Args:
            txn: Open transaction; the project read registers it for
                conflict detection.
            project_id: Project owning the milestone.
            expected_version: Version the caller based its decision on.
            milestone_id: Milestone to transition.
            decision: Audit decision (maps to the milestone status).
            score: Overall report score.
            report_id: Report producing the outcome.
            auditor_id: Auditor producing the outcome.
            now: Transition time.

        Returns:
            The project and milestone as they will be after commit.

        Raises:
            ProjectNotFoundError: Project missing.
            VersionConflictError: Project version differs from expected.
            MilestoneNotFoundError: Milestone not in the project.
            MilestoneNotEligibleError: Milestone not completed or submitted.
        """
        document = await txn.get(collections.PROJECTS, project_id)
        if document is None:
            raise ProjectNotFoundError(project_id)
        project = Project.from_dict(document)
        if project.version != expected_version:
            raise VersionConflictError(project_id, expected_version, project.version)

        milestone = project.find_milestone(milestone_id)
        if milestone is None:
            raise MilestoneNotFoundError(milestone_id)
        if not milestone.is_audit_eligible:
            raise MilestoneNotEligibleError(milestone_id, milestone.status.value)

        updated = milestone.with_audit_outcome(
            status=decision.milestone_status,
            decision=decision.value,
            score=score,
            report_id=report_id,
            auditor_id=auditor_id,
            completed_at=now,
        )
        milestones = project.replace_milestone(updated)
        txn.update(
            collections.PROJECTS,
            project_id,
            ProjectPatch(
                milestones=milestones,
                last_milestone_audit=MilestoneAuditSummary(
                    milestone_id=milestone_id,
                    decision=decision.value,
                    score=score,
                    completed_at=now,
                ),
                version=project.version + 1,
                updated_at=now,
            ).to_fields(),
        )
        logger.info(
            "milestone_transition_buffered",
            project_id=project_id,
            milestone_id=milestone_id,
            new_status=updated.status.value,
            version=project.version + 1,
        )
        return MilestoneTransition(
            project=replace(project, version=project.version + 1, milestones=milestones),
            milestone=updated,
        )

    # Settlement

    def should_settle(self, project: Project, decision: AuditDecision) -> bool:
        return (
            decision == AuditDecision.APPROVED
            and project.settings.auto_release_on_audit_approval
        )

    async def settle_milestone(
        self,
        project: Project,
        milestone: Milestone,
        audit_id: str,
        auditor_id: str,
        now: datetime | None = None,
    ) -> SettlementOutcome:
        """Release every open escrow entry for an approved milestone.

        Args:
            project: Project whose contributions are settled.
            milestone: Approved milestone.
            audit_id: Audit that approved it (transfer metadata).
            auditor_id: Approving auditor (recorded on released entries).
            now: Release time (defaults to the current UTC time).

        Returns:
            Per-entry outcome. Never raises for individual transfer or
            marking failures.
        """
        now = now or datetime.now(timezone.utc)
        log = logger.bind(project_id=project.id, milestone_id=milestone.id, audit_id=audit_id)

        documents = await self._store.query(
            collections.CONTRIBUTIONS,
            filters=[
                FieldFilter("project_id", FilterOp.EQ, project.id),
                FieldFilter("status", FilterOp.EQ, ContributionStatus.CONFIRMED.value),
                FieldFilter("escrow.held", FilterOp.EQ, True),
            ],
        )
        destination = project.payout_destination or self._config.default_payout_destination

        results: list[_EntryResult] = []
        batch_size = self._config.batch_size
        for start in range(0, len(documents), batch_size):
            batch = documents[start : start + batch_size]
            settled = await asyncio.gather(
                *(
                    self._settle_contribution(
                        document, project, milestone, audit_id, auditor_id, destination, now
                    )
                    for document in batch
                ),
                return_exceptions=True,
            )
            for document, item in zip(batch, settled):
                if isinstance(item, BaseException):
                    log.error(
                        "contribution_settlement_failed",
                        contribution_id=document.get("id"),
                        error=str(item),
                    )
                    results.append(
                        _EntryResult(contribution_id=document.get("id", ""), failure=str(item))
                    )
                else:
                    results.append(item)

        outcome = self._summarize(len(documents), results)
        log.info(
            "milestone_settlement_completed",
            status=outcome.status.value,
            contributions=outcome.contributions_considered,
            entries_released=outcome.entries_released,
            entries_failed=len(outcome.failures),
            total_released=outcome.total_released,
        )
        return outcome

    async def _settle_contribution(
        self,
        document: dict[str, Any],
        project: Project,
        milestone: Milestone,
        audit_id: str,
        auditor_id: str,
        destination: str | None,
        now: datetime,
    ) -> _EntryResult:
        contribution_id = document["id"]
        log = logger.bind(contribution_id=contribution_id, milestone_id=milestone.id)

        fresh = await self._store.get(collections.CONTRIBUTIONS, contribution_id)
        if fresh is None:
            return _EntryResult(contribution_id=contribution_id, skipped=True)
        contribution = Contribution.from_dict(fresh)
        entry = contribution.open_entry_for(milestone.id)
        if entry is None:
            return _EntryResult(contribution_id=contribution_id, skipped=True)

        if not destination:
            log.error("escrow_release_without_destination", amount=entry.amount)
            return _EntryResult(
                contribution_id=contribution_id,
                failure="no payout destination",
                amount=entry.amount,
            )

        try:
            transfer_id = await self._payments.create_transfer(
                amount=entry.amount,
                currency=contribution.currency.lower(),
                destination=destination,
                metadata={
                    "contribution_id": contribution_id,
                    "project_id": project.id,
                    "milestone_id": milestone.id,
                    "audit_id": audit_id,
                    "auto_release": "true",
                    "description": (
                        f"Automatic escrow release: {project.title} - Milestone: {milestone.title}"
                    ),
                },
            )
        except Exception as e:
            if self._metrics:
                self._metrics.record_transfer("failed")
            log.error("escrow_transfer_failed", amount=entry.amount, error=str(e))
            return _EntryResult(contribution_id=contribution_id, failure=str(e), amount=entry.amount)

        try:
            marked = await self._mark_released(contribution_id, entry, transfer_id, auditor_id, now)
        except Exception as e:
            if self._metrics:
                self._metrics.record_transfer("unrecorded")
            log.critical(
                "escrow_release_not_recorded",
                transfer_id=transfer_id,
                amount=entry.amount,
                error=str(e),
            )
            return _EntryResult(contribution_id=contribution_id, failure=str(e), amount=entry.amount)

        if not marked:
            if self._metrics:
                self._metrics.record_transfer("duplicate")
            return _EntryResult(
                contribution_id=contribution_id,
                failure="entry already released",
                amount=entry.amount,
            )

        if self._metrics:
            self._metrics.record_transfer("released", entry.amount)
        log.info("escrow_entry_released", transfer_id=transfer_id, amount=entry.amount)
        return _EntryResult(contribution_id=contribution_id, released=entry.amount)

    async def _mark_released(
        self,
        contribution_id: str,
        entry: ReleaseScheduleEntry,
        transfer_id: str,
        auditor_id: str,
        now: datetime,
    ) -> bool:
        """Flag an entry released; False if another writer got there first."""
        async with self._store.transaction() as txn:
            document = await txn.get(collections.CONTRIBUTIONS, contribution_id)
            if document is None:
                raise RuntimeError(f"Contribution {contribution_id} disappeared during settlement")
            schedule = (document.get("escrow") or {}).get("release_schedule") or []
            current = ReleaseScheduleEntry.from_dict(entry.index, schedule[entry.index])
            if current.released or current.milestone_id != entry.milestone_id:
                logger.critical(
                    "escrow_entry_already_released",
                    contribution_id=contribution_id,
                    entry_index=entry.index,
                    existing_transfer_id=current.transfer_id,
                    duplicate_transfer_id=transfer_id,
                )
                return False
            txn.update(
                collections.CONTRIBUTIONS,
                contribution_id,
                {
                    f"{entry.path}.released": True,
                    f"{entry.path}.released_at": now,
                    f"{entry.path}.transfer_id": transfer_id,
                    f"{entry.path}.released_by": auditor_id,
                    f"{entry.path}.release_reason": RELEASE_REASON_AUDIT_APPROVAL,
                    "updated_at": now,
                },
            )
        return True

    @staticmethod
    def _summarize(considered: int, results: list[_EntryResult]) -> SettlementOutcome:
        failures = tuple(
            EntryFailure(contribution_id=r.contribution_id, amount=r.amount, reason=r.failure)
            for r in results
            if r.failure is not None
        )
        released = [r for r in results if r.failure is None and not r.skipped]
        if not failures:
            status = OperationStatus.OK
        elif released:
            status = OperationStatus.PARTIAL
        else:
            status = OperationStatus.FAILED
        return SettlementOutcome(
            status=status,
            contributions_considered=considered,
            entries_released=len(released),
            entries_skipped=sum(1 for r in results if r.skipped),
            total_released=sum(r.released for r in released),
            failures=failures,
        )
