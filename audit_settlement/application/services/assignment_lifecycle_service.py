"""Assignment lifecycle service.

Owns the audit request state machine:

    pending_assignment -> pending_acceptance -> assigned
                       ^         |
                       +-- expired (sweep)
    pending_assignment / expired cycles -> escalated

A queue run assigns every eligible pending request to its top-scored
auditor, then sweeps pending-acceptance assignments: overdue ones expire
and re-open their request, ones close to their deadline get a single
reminder.

Constraints:
- One active assignment per request; assignment, request and auditor
  workload change in one transaction
- Escalation is terminal until an operator reassigns manually
- Notifications are fire-and-forget

Developer Golden Rules:
1. Per-request failures are counted, never abort the run
2. Workload counters move through increments only
3. reminder_sent is set only after the reminder was delivered

Usage:
    service = AssignmentLifecycleService(store, matcher, notifier, config)
    result = await service.process_queue()
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Any

from structlog import get_logger

from audit_settlement.application import collections
from audit_settlement.application.ports.document_store import (
    DocumentStoreProtocol,
    FieldFilter,
    FilterOp,
    OrderBy,
)
from audit_settlement.application.ports.notification import NotificationSenderProtocol
from audit_settlement.application.services.auditor_matching_service import (
    AuditorMatchingService,
    ScoredAuditor,
)
from audit_settlement.application.services.notification_dispatch import (
    notify_operators,
    send_notification,
)
from audit_settlement.config import AssignmentConfig
from audit_settlement.domain.errors import (
    AssignmentExpiredError,
    AssignmentNotFoundError,
    AssignmentNotPendingError,
    AuditorMismatchError,
    AuditRequestNotFoundError,
)
from audit_settlement.domain.models import (
    AssignmentStatus,
    Audit,
    AuditAssignment,
    AuditAssignmentPatch,
    AuditCompensation,
    AuditCriterion,
    AuditorWorkloadDelta,
    AuditPriority,
    AuditRequest,
    AuditRequestPatch,
    AuditRequestStatus,
    AuditStatus,
    EscalationReason,
    EscalationTicket,
    QueueProcessingResult,
)
from audit_settlement.domain.primitives import new_id, whole_days_between
from audit_settlement.infrastructure.monitoring import EngineMetrics

logger = get_logger(__name__)

EXPIRY_REASON_TIMEOUT = "acceptance_timeout"


class AssignmentLifecycleService:
    """Assigns, expires, reminds, escalates and accepts audit work."""

    def __init__(
        self,
        store: DocumentStoreProtocol,
        matcher: AuditorMatchingService,
        notifier: NotificationSenderProtocol,
        config: AssignmentConfig,
        metrics: EngineMetrics | None = None,
    ) -> None:
        """Initialize the lifecycle service.

        Args:
            store: Document store for requests, assignments and auditors.
            matcher: Ranks candidate auditors for a request.
            notifier: Auditor and operator notifications.
            config: Windows, batch sizes and escalation policy.
            metrics: Optional Prometheus metrics.
        """
        self._store = store
        self._matcher = matcher
        self._notifier = notifier
        self._config = config
        self._metrics = metrics

    # Queue run

    async def process_queue(self, now: datetime | None = None) -> QueueProcessingResult:
        """Run one pass over the audit queue.

        Assigns eligible pending requests, then sweeps pending-acceptance
        assignments, then records platform statistics.

        Args:
            now: Reference time (defaults to the current UTC time).

        Returns:
            Counters for the run.

        Raises:
            Exception: Only if the pending-request query itself fails.
        """
        now = now or datetime.now(timezone.utc)
        result = QueueProcessingResult(batch_id=new_id("audit_queue"))
        log = logger.bind(batch_id=result.batch_id)

        requests = await self._load_pending_requests(now, result)
        result.total_pending = len(requests)
        log.info("audit_queue_started", pending=len(requests))

        for request in requests:
            await self._process_request(request, now, result)

        await self.sweep(now, result)
        await self._record_run_statistics(result, now)

        log.info(
            "audit_queue_processed",
            total_pending=result.total_pending,
            assigned=result.assigned,
            escalated=result.escalated,
            expired=result.expired,
            reminders_sent=result.reminders_sent,
            errors=result.errors,
        )
        return result

    async def _load_pending_requests(
        self, now: datetime, result: QueueProcessingResult
    ) -> list[AuditRequest]:
        lead_time_cutoff = now + timedelta(hours=self._config.min_lead_time_hours)
        documents = await self._store.query(
            collections.AUDIT_REQUESTS,
            filters=[
                FieldFilter("status", FilterOp.EQ, AuditRequestStatus.PENDING_ASSIGNMENT.value),
                FieldFilter("deadline", FilterOp.GT, lead_time_cutoff),
            ],
            order_by=[OrderBy("priority_rank"), OrderBy("created_at")],
        )

        requests: list[AuditRequest] = []
        for document in documents:
            try:
                requests.append(AuditRequest.from_dict(document))
            except (KeyError, TypeError, ValueError) as e:
                result.errors += 1
                logger.warning(
                    "audit_request_unreadable",
                    audit_request_id=document.get("id"),
                    error=str(e),
                )
        # Documents written without a rank sort first in the store, so the batch
        # is cut only after re-sorting the full read on the enum.
        requests.sort(key=lambda r: (r.priority.rank, r.created_at))
        return requests[: self._config.queue_batch_size]

    async def _process_request(
        self, request: AuditRequest, now: datetime, result: QueueProcessingResult
    ) -> None:
        log = logger.bind(audit_request_id=request.id, batch_id=result.batch_id)
        try:
            candidates = await self._matcher.find_qualified_auditors(request)
            if not candidates:
                await self.escalate(request, EscalationReason.NO_QUALIFIED_AUDITORS, now)
                result.record_escalation(EscalationReason.NO_QUALIFIED_AUDITORS.value)
                return

            top = candidates[0]
            try:
                assignment = await self.assign(request, top, now)
            except Exception as e:
                log.error("audit_assignment_failed", auditor_id=top.auditor.id, error=str(e))
                await self.escalate(request, EscalationReason.ASSIGNMENT_FAILED, now)
                result.record_escalation(EscalationReason.ASSIGNMENT_FAILED.value)
                return

            if assignment is None:
                return
            result.record_assignment(request.complexity.value)
            if await self._notify_assignment(request, top, assignment):
                result.auditors_notified += 1
        except Exception as e:
            result.errors += 1
            log.error("audit_request_processing_failed", error=str(e))

    # Assign

    async def assign(
        self, request: AuditRequest, candidate: ScoredAuditor, now: datetime
    ) -> AuditAssignment | None:
        """Offer a request to an auditor.

        Creates the assignment, moves the request to pending_acceptance
        and bumps the auditor's pending counter in one transaction.

        Returns:
            The new assignment, or None if the request is no longer
            pending assignment.
        """
        log = logger.bind(audit_request_id=request.id, auditor_id=candidate.auditor.id)
        assignment = AuditAssignment(
            id=new_id("assignment"),
            audit_request_id=request.id,
            auditor_id=candidate.auditor.id,
            project_id=request.project_id,
            assigned_at=now,
            acceptance_deadline=now + timedelta(hours=self._config.acceptance_window_hours),
            match_score=candidate.score,
        )

        async with self._store.transaction() as txn:
            current = await txn.get(collections.AUDIT_REQUESTS, request.id)
            if current is None:
                raise AuditRequestNotFoundError(request.id)
            if current.get("status") != AuditRequestStatus.PENDING_ASSIGNMENT.value:
                log.info("audit_request_no_longer_pending", status=current.get("status"))
                return None

            txn.set(collections.AUDIT_ASSIGNMENTS, assignment.id, assignment.to_dict())
            txn.update(
                collections.AUDIT_REQUESTS,
                request.id,
                AuditRequestPatch(
                    status=AuditRequestStatus.PENDING_ACCEPTANCE,
                    assigned_auditor_id=candidate.auditor.id,
                    assignment_id=assignment.id,
                    assignment_deadline=assignment.acceptance_deadline,
                    assigned_at=now,
                    updated_at=now,
                ).to_fields(),
            )
            txn.increment(
                collections.AUDITORS,
                candidate.auditor.id,
                AuditorWorkloadDelta(pending_assignments=1).to_increments(),
            )

        if self._metrics:
            self._metrics.record_assignment(request.complexity.value)
        log.info(
            "audit_assigned",
            assignment_id=assignment.id,
            match_score=candidate.score,
            acceptance_deadline=assignment.acceptance_deadline.isoformat(),
        )
        return assignment

    async def _notify_assignment(
        self, request: AuditRequest, candidate: ScoredAuditor, assignment: AuditAssignment
    ) -> bool:
        return await send_notification(
            self._notifier,
            candidate.auditor.id,
            "audit_assignment",
            {
                "auditor_name": candidate.auditor.display_name,
                "assignment_id": assignment.id,
                "audit_request_id": request.id,
                "project_id": request.project_id,
                "project_title": request.project_title,
                "complexity": request.complexity.value,
                "estimated_amount": request.estimated_amount,
                "audit_deadline": request.deadline.isoformat(),
                "acceptance_deadline": assignment.acceptance_deadline.isoformat(),
            },
            logger.bind(assignment_id=assignment.id),
        )

    # Escalate

    async def escalate(
        self, request: AuditRequest, reason: EscalationReason, now: datetime
    ) -> EscalationTicket:
        """Hand a request to operators.

        Writes the escalation ticket and marks the request escalated in
        one transaction, then notifies operators.
        """
        ticket = EscalationTicket(
            id=new_id("escalation"),
            audit_request_id=request.id,
            project_id=request.project_id,
            reason=reason,
            escalated_at=now,
            suggested_actions=reason.suggested_actions,
            metadata={
                "original_priority": request.priority.value,
                "complexity": request.complexity.value,
                "estimated_amount": request.estimated_amount,
                "days_since_creation": whole_days_between(request.created_at, now),
                "expired_assignment_count": request.expired_assignment_count,
            },
        )

        async with self._store.transaction() as txn:
            txn.set(collections.AUDIT_ESCALATIONS, ticket.id, ticket.to_dict())
            txn.update(
                collections.AUDIT_REQUESTS,
                request.id,
                AuditRequestPatch(
                    status=AuditRequestStatus.ESCALATED,
                    escalation_id=ticket.id,
                    escalation_reason=reason.value,
                    escalated_at=now,
                    updated_at=now,
                ).to_fields(),
            )

        if self._metrics:
            self._metrics.record_escalation(reason.value)
        log = logger.bind(audit_request_id=request.id, escalation_id=ticket.id)
        log.warning("audit_request_escalated", reason=reason.value)

        await notify_operators(
            self._store,
            self._notifier,
            "audit_escalation",
            {
                "escalation_id": ticket.id,
                "audit_request_id": request.id,
                "project_id": request.project_id,
                "project_title": request.project_title,
                "reason": reason.value,
                "suggested_actions": list(ticket.suggested_actions),
                "priority": request.priority.value,
            },
            log,
        )
        return ticket

    # Sweep

    async def sweep(
        self, now: datetime | None = None, result: QueueProcessingResult | None = None
    ) -> QueueProcessingResult:
        """Expire overdue assignments and remind auditors close to their deadline.

        Args:
            now: Reference time (defaults to the current UTC time).
            result: Counters to add to; a new result is created if omitted.

        Returns:
            The updated counters.
        """
        now = now or datetime.now(timezone.utc)
        result = result or QueueProcessingResult(batch_id=new_id("assignment_sweep"))
        log = logger.bind(batch_id=result.batch_id)

        documents = await self._store.query(
            collections.AUDIT_ASSIGNMENTS,
            filters=[
                FieldFilter("status", FilterOp.EQ, AssignmentStatus.PENDING_ACCEPTANCE.value)
            ],
            order_by=[OrderBy("acceptance_deadline")],
            limit=self._config.sweep_batch_size,
        )

        for document in documents:
            try:
                assignment = AuditAssignment.from_dict(document)
                if assignment.is_overdue(now):
                    await self._expire_and_follow_up(assignment, now, result)
                elif self._due_for_reminder(assignment, now):
                    if await self._send_reminder(assignment, now):
                        result.reminders_sent += 1
            except Exception as e:
                result.errors += 1
                log.error("assignment_sweep_failed", assignment_id=document.get("id"), error=str(e))

        log.info("assignment_sweep_completed", expired=result.expired, reminders_sent=result.reminders_sent)
        return result

    async def expire_assignment(
        self, assignment: AuditAssignment, now: datetime
    ) -> tuple[bool, AuditRequest | None]:
        """Expire one overdue assignment.

        Returns:
            Whether the assignment was expired, and the re-opened request.
            The request is None when the assignment was no longer pending
            or when its request had moved on to another assignment.
        """
        reopened: AuditRequest | None = None
        async with self._store.transaction() as txn:
            current = await txn.get(collections.AUDIT_ASSIGNMENTS, assignment.id)
            if current is None or current.get("status") != AssignmentStatus.PENDING_ACCEPTANCE.value:
                return False, None
            request_doc = await txn.get(collections.AUDIT_REQUESTS, assignment.audit_request_id)

            txn.update(
                collections.AUDIT_ASSIGNMENTS,
                assignment.id,
                AuditAssignmentPatch(
                    status=AssignmentStatus.EXPIRED,
                    expired_at=now,
                    expired_reason=EXPIRY_REASON_TIMEOUT,
                ).to_fields(),
            )
            txn.increment(
                collections.AUDITORS,
                assignment.auditor_id,
                AuditorWorkloadDelta(pending_assignments=-1, expired_assignments=1).to_increments(),
            )
            if request_doc is not None and request_doc.get("assignment_id") == assignment.id:
                txn.update(
                    collections.AUDIT_REQUESTS,
                    assignment.audit_request_id,
                    AuditRequestPatch(
                        status=AuditRequestStatus.PENDING_ASSIGNMENT,
                        assigned_auditor_id=None,
                        assignment_id=None,
                        assignment_deadline=None,
                        assigned_at=None,
                        updated_at=now,
                    ).to_fields(),
                )
                txn.increment(
                    collections.AUDIT_REQUESTS,
                    assignment.audit_request_id,
                    {"expired_assignment_count": 1},
                )
                request = AuditRequest.from_dict(request_doc)
                reopened = dataclasses.replace(
                    request,
                    status=AuditRequestStatus.PENDING_ASSIGNMENT,
                    assigned_auditor_id=None,
                    assignment_id=None,
                    assignment_deadline=None,
                    expired_assignment_count=request.expired_assignment_count + 1,
                )

        if self._metrics:
            self._metrics.record_expiry()
        logger.info(
            "audit_assignment_expired",
            assignment_id=assignment.id,
            audit_request_id=assignment.audit_request_id,
            auditor_id=assignment.auditor_id,
            request_reopened=reopened is not None,
        )
        return True, reopened

    async def _expire_and_follow_up(
        self, assignment: AuditAssignment, now: datetime, result: QueueProcessingResult
    ) -> None:
        expired, reopened = await self.expire_assignment(assignment, now)
        if expired:
            result.expired += 1
        if reopened is None:
            return

        reason = self._expiry_escalation_reason(reopened)
        if reason is not None:
            await self.escalate(reopened, reason, now)
            result.record_escalation(reason.value)

    def _expiry_escalation_reason(self, request: AuditRequest) -> EscalationReason | None:
        if request.expired_assignment_count >= self._config.max_assignment_cycles:
            return EscalationReason.REPEATED_REJECTIONS
        if request.priority == AuditPriority.URGENT and self._config.escalate_urgent_on_expiry:
            return EscalationReason.URGENT_PRIORITY
        return None

    def _due_for_reminder(self, assignment: AuditAssignment, now: datetime) -> bool:
        if assignment.reminder_sent:
            return False
        window = timedelta(hours=self._config.reminder_window_hours)
        return assignment.acceptance_deadline - now <= window

    async def _send_reminder(self, assignment: AuditAssignment, now: datetime) -> bool:
        log = logger.bind(assignment_id=assignment.id, auditor_id=assignment.auditor_id)
        remaining = assignment.acceptance_deadline - now
        delivered = await send_notification(
            self._notifier,
            assignment.auditor_id,
            "audit_acceptance_reminder",
            {
                "assignment_id": assignment.id,
                "audit_request_id": assignment.audit_request_id,
                "project_id": assignment.project_id,
                "acceptance_deadline": assignment.acceptance_deadline.isoformat(),
                "hours_remaining": max(0, int(remaining.total_seconds() // 3600)),
            },
            log,
        )
        if not delivered:
            return False

        await self._store.update(
            collections.AUDIT_ASSIGNMENTS,
            assignment.id,
            AuditAssignmentPatch(reminder_sent=True, reminder_sent_at=now).to_fields(),
        )
        if self._metrics:
            self._metrics.record_reminder()
        log.info("acceptance_reminder_sent")
        return True

    # Accept

    async def accept_assignment(
        self, assignment_id: str, auditor_id: str, now: datetime | None = None
    ) -> Audit:
        """Accept a pending assignment and open the audit.

        Args:
            assignment_id: Assignment being accepted.
            auditor_id: Auditor accepting; must be the assignee.
            now: Reference time (defaults to the current UTC time).

        Returns:
            The audit created in ``in_progress``.

        Raises:
            AssignmentNotFoundError: Unknown assignment.
            AuditorMismatchError: Caller is not the assignee.
            AssignmentNotPendingError: Assignment already accepted or expired.
            AssignmentExpiredError: Acceptance deadline has passed.
            AuditRequestNotFoundError: The request behind it is gone.
        """
        now = now or datetime.now(timezone.utc)
        log = logger.bind(assignment_id=assignment_id, auditor_id=auditor_id)

        async with self._store.transaction() as txn:
            assignment_doc = await txn.get(collections.AUDIT_ASSIGNMENTS, assignment_id)
            if assignment_doc is None:
                raise AssignmentNotFoundError(assignment_id)
            assignment = AuditAssignment.from_dict(assignment_doc)
            if assignment.auditor_id != auditor_id:
                raise AuditorMismatchError(assignment_id, auditor_id)
            if assignment.status != AssignmentStatus.PENDING_ACCEPTANCE:
                raise AssignmentNotPendingError(assignment_id, assignment.status.value)
            if assignment.is_overdue(now):
                raise AssignmentExpiredError(assignment_id, assignment.acceptance_deadline)

            request_doc = await txn.get(collections.AUDIT_REQUESTS, assignment.audit_request_id)
            if request_doc is None:
                raise AuditRequestNotFoundError(assignment.audit_request_id)
            request = AuditRequest.from_dict(request_doc)

            audit = self._open_audit(request, assignment, now)
            txn.set(collections.AUDITS, audit.id, audit.to_dict())
            txn.update(
                collections.AUDIT_ASSIGNMENTS,
                assignment_id,
                AuditAssignmentPatch(
                    status=AssignmentStatus.ACCEPTED, accepted_at=now, audit_id=audit.id
                ).to_fields(),
            )
            txn.update(
                collections.AUDIT_REQUESTS,
                request.id,
                AuditRequestPatch(
                    status=AuditRequestStatus.ASSIGNED, accepted_at=now, updated_at=now
                ).to_fields(),
            )
            txn.increment(
                collections.AUDITORS,
                auditor_id,
                AuditorWorkloadDelta(current_audits=1, pending_assignments=-1).to_increments(),
            )

        log.info("audit_assignment_accepted", audit_id=audit.id, audit_request_id=request.id)
        return audit

    def _open_audit(
        self, request: AuditRequest, assignment: AuditAssignment, now: datetime
    ) -> Audit:
        return Audit(
            id=new_id("audit"),
            project_id=request.project_id,
            auditor_id=assignment.auditor_id,
            deadline=request.deadline,
            compensation=AuditCompensation(amount=request.estimated_amount),
            status=AuditStatus.IN_PROGRESS,
            criteria=tuple(
                AuditCriterion(name=name, required=required)
                for name, required in self._config.default_criteria
            ),
            current_milestone=request.milestone_id,
            audit_request_id=request.id,
            accepted_at=now,
        )

    # Statistics

    async def _record_run_statistics(self, result: QueueProcessingResult, now: datetime) -> None:
        deltas: dict[str, Any] = {
            "audits.queue_runs": 1,
            "audits.assigned": result.assigned,
            "audits.escalated": result.escalated,
            "audits.expired": result.expired,
            "audits.reminders_sent": result.reminders_sent,
        }
        for complexity, count in result.assignments_by_complexity.items():
            deltas[f"audits.assignments_by_complexity.{complexity}"] = count
        for reason, count in result.escalation_reasons.items():
            deltas[f"audits.escalation_reasons.{reason}"] = count

        try:
            await self._store.increment(
                collections.PLATFORM_STATS,
                collections.GLOBAL_STATS_ID,
                {path: delta for path, delta in deltas.items() if delta},
            )
            await self._store.update(
                collections.PLATFORM_STATS,
                collections.GLOBAL_STATS_ID,
                {"audits.last_queue_run_at": now},
            )
        except Exception as e:
            logger.warning("queue_statistics_update_failed", batch_id=result.batch_id, error=str(e))
