"""Scheduled-run entry points invoked by the external scheduler."""

from audit_settlement.workers.scheduled_jobs import (
    JOB_AUDIT_QUEUE,
    JOB_INTEREST_ACCRUAL,
    ScheduledJobRunner,
)

__all__ = ["JOB_AUDIT_QUEUE", "JOB_INTEREST_ACCRUAL", "ScheduledJobRunner"]
