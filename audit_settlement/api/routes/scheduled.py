"""Scheduler trigger routes.

The external cron-like scheduler calls these on fixed intervals. Both
runs are idempotent and re-entrant; a run-level failure returns 500
after the execution record is written.
"""

from fastapi import APIRouter, Depends

from audit_settlement.api.dependencies.engine import get_scheduled_job_runner
from audit_settlement.api.models.scheduled import (
    InterestRunResponse,
    QueueRunResponse,
    ScheduledRunRequest,
)
from audit_settlement.workers import ScheduledJobRunner

router = APIRouter(prefix="/v1/scheduled", tags=["scheduled"])


@router.post("/audit-queue", response_model=QueueRunResponse)
async def run_audit_queue(
    request_data: ScheduledRunRequest | None = None,
    runner: ScheduledJobRunner = Depends(get_scheduled_job_runner),
) -> QueueRunResponse:
    """Assign pending audit requests and sweep pending acceptances."""
    now = request_data.now if request_data else None
    result = await runner.run_audit_queue(now)
    return QueueRunResponse(**result.to_dict())


@router.post("/interest-accrual", response_model=InterestRunResponse)
async def run_interest_accrual(
    request_data: ScheduledRunRequest | None = None,
    runner: ScheduledJobRunner = Depends(get_scheduled_job_runner),
) -> InterestRunResponse:
    """Accrue interest on held escrow and run the integrity check."""
    now = request_data.now if request_data else None
    result = await runner.run_interest_accrual(now)
    return InterestRunResponse(**result.to_dict())
