"""Auditor compensation record (append-only)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class CompensationStatus(str, Enum):
    """Status reported for an auditor's compensation.

    ``PENDING_PAYMENT`` is the stored record's status. ``CALCULATED`` and
    ``PENDING`` are reported to the submitting auditor depending on whether
    the record could be persisted.
    """

    PENDING_PAYMENT = "pending_payment"
    CALCULATED = "calculated"
    PENDING = "pending"


@dataclass(frozen=True)
class CompensationBreakdown:
    """Result of the compensation calculation.

    Attributes:
        base_amount: Agreed fee (minor units).
        quality_multiplier: 1.1, 1.0 or 0.9 by report score.
        timing_multiplier: 1.05 for early completion, else 1.0.
        final_amount: round(base * quality * timing).
        days_early: Whole days (rounded up) before the audit deadline.
    """

    base_amount: int
    quality_multiplier: float
    timing_multiplier: float
    final_amount: int
    days_early: int


@dataclass(frozen=True)
class CompensationRecord:
    """Stored compensation record, one per completed audit."""

    id: str
    audit_id: str
    auditor_id: str
    project_id: str
    base_amount: int
    final_amount: int
    quality_multiplier: float
    timing_multiplier: float
    time_spent_hours: float
    hourly_rate: int
    created_at: datetime
    due_date: datetime
    status: CompensationStatus = CompensationStatus.PENDING_PAYMENT

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "audit_id": self.audit_id,
            "auditor_id": self.auditor_id,
            "project_id": self.project_id,
            "base_amount": self.base_amount,
            "final_amount": self.final_amount,
            "quality_multiplier": self.quality_multiplier,
            "timing_multiplier": self.timing_multiplier,
            "quality_bonus": round(self.quality_multiplier - 1.0, 4),
            "timing_bonus": round(self.timing_multiplier - 1.0, 4),
            "time_spent_hours": self.time_spent_hours,
            "hourly_rate": self.hourly_rate,
            "status": self.status.value,
            "created_at": self.created_at,
            "due_date": self.due_date,
        }
