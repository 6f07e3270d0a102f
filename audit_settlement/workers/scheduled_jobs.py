"""Scheduled job runner.

The external scheduler calls two idempotent, re-entrant entry points on
fixed intervals: the audit queue run (every couple of hours) and the
interest accrual run (daily). Each run re-derives its work set by query;
no state is carried between ticks.

Every run writes a ``scheduled_executions`` document with its status,
duration and summary. Run-level failures are recorded and re-raised so
the scheduler sees them; per-item failures are already isolated inside
the services and only show up in the summary counters.

Usage:
    runner = ScheduledJobRunner(store, assignment_service, interest_service)
    result = await runner.run_audit_queue()
    result = await runner.run_interest_accrual()
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from structlog import get_logger

from audit_settlement.application import collections
from audit_settlement.application.ports.document_store import DocumentStoreProtocol
from audit_settlement.application.services.assignment_lifecycle_service import (
    AssignmentLifecycleService,
)
from audit_settlement.application.services.interest_accrual_service import (
    InterestAccrualService,
)
from audit_settlement.domain.models import InterestRunResult, QueueProcessingResult
from audit_settlement.domain.primitives import new_id
from audit_settlement.infrastructure.monitoring.metrics import EngineMetrics
from audit_settlement.infrastructure.observability.correlation import (
    generate_correlation_id,
    set_correlation_id,
)

logger = get_logger(__name__)

JOB_AUDIT_QUEUE = "audit_queue"
JOB_INTEREST_ACCRUAL = "interest_accrual"


class ScheduledJobRunner:
    """Wraps the scheduler entry points with execution records."""

    def __init__(
        self,
        store: DocumentStoreProtocol,
        assignments: AssignmentLifecycleService,
        interest: InterestAccrualService,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._store = store
        self._assignments = assignments
        self._interest = interest
        self._metrics = metrics

    async def run_audit_queue(self, now: datetime | None = None) -> QueueProcessingResult:
        """Assign pending requests, expire and remind pending acceptances."""
        return await self._run(
            JOB_AUDIT_QUEUE, lambda: self._assignments.process_queue(now), now
        )

    async def run_interest_accrual(self, now: datetime | None = None) -> InterestRunResult:
        """Accrue interest on held escrow and reconcile the running total."""
        return await self._run(
            JOB_INTEREST_ACCRUAL, lambda: self._interest.accrue_interest(now), now
        )

    async def _run(
        self,
        job: str,
        run: Callable[[], Awaitable[Any]],
        now: datetime | None,
    ) -> Any:
        set_correlation_id(generate_correlation_id())
        execution_id = new_id(job)
        started_at = now or datetime.now(timezone.utc)
        log = logger.bind(job=job, execution_id=execution_id)
        log.info("scheduled_job_started")

        start = time.monotonic()
        try:
            result = await run()
        except Exception as e:
            duration = time.monotonic() - start
            log.error("scheduled_job_failed", duration_seconds=duration, error=str(e))
            await self._record_execution(
                execution_id,
                job,
                started_at,
                duration,
                {"status": "failed", "error": str(e)},
            )
            self._observe(job, duration)
            raise

        duration = time.monotonic() - start
        summary = result.to_dict()
        await self._record_execution(
            execution_id,
            job,
            started_at,
            duration,
            {"status": "completed", "summary": summary},
        )
        self._observe(job, duration)
        log.info("scheduled_job_completed", duration_seconds=duration, status=summary["status"])
        return result

    async def _record_execution(
        self,
        execution_id: str,
        job: str,
        started_at: datetime,
        duration: float,
        outcome: dict[str, Any],
    ) -> None:
        try:
            await self._store.set(
                collections.SCHEDULED_EXECUTIONS,
                execution_id,
                {
                    "id": execution_id,
                    "job": job,
                    "started_at": started_at,
                    "duration_seconds": round(duration, 3),
                    **outcome,
                },
            )
        except Exception as e:
            logger.warning(
                "scheduled_execution_not_recorded",
                job=job,
                execution_id=execution_id,
                error=str(e),
            )

    def _observe(self, job: str, duration: float) -> None:
        if self._metrics:
            self._metrics.observe_run_duration(job, duration)
