"""Scheduled run request/response models."""

from datetime import datetime

from pydantic import BaseModel, Field


class ScheduledRunRequest(BaseModel):
    """Optional reference time for a run (defaults to now)."""

    now: datetime | None = None


class QueueRunResponse(BaseModel):
    batch_id: str
    status: str
    total_pending: int
    assigned: int
    escalated: int
    auditors_notified: int
    reminders_sent: int
    expired: int
    errors: int
    assignments_by_complexity: dict[str, int] = Field(default_factory=dict)
    escalation_reasons: dict[str, int] = Field(default_factory=dict)


class IntegrityResponse(BaseModel):
    recorded_total: int
    calculated_total: int
    discrepancy: int
    records_checked: int
    passed: bool
    ticket_id: str | None = None


class InterestRunResponse(BaseModel):
    batch_id: str
    status: str
    total_records: int
    processed: int
    skipped: int
    errors: int
    total_interest_accrued: int
    failed_escrow_ids: list[str] = Field(default_factory=list)
    integrity: IntegrityResponse | None = None
