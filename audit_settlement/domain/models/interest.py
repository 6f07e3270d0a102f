"""Interest accrual models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

# Stored on every calculation row; accrual compounds through repeated runs
CALCULATION_METHOD = "compound_daily"


@dataclass(frozen=True)
class InterestCalculation:
    """One interest calculation for one escrow record in one run.

    Attributes:
        id: Row identifier.
        escrow_id: Escrow record the interest accrues on.
        project_id: Project holding the escrow.
        contributor_id: Contributor earning the interest.
        principal_amount: Principal used (minor units).
        interest_rate: Annual rate applied, after bonuses and cap.
        days_held: Whole days since the previous calculation.
        interest_earned: round(principal * rate / 365 * days_held).
        calculation_date: When the run computed this row.
        previous_calculation_date: Start of the accrual window.
    """

    id: str
    escrow_id: str
    project_id: str
    contributor_id: str
    principal_amount: int
    interest_rate: float
    days_held: int
    interest_earned: int
    calculation_date: datetime
    previous_calculation_date: datetime

    @property
    def total_amount(self) -> int:
        return self.principal_amount + self.interest_earned

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "escrow_id": self.escrow_id,
            "project_id": self.project_id,
            "contributor_id": self.contributor_id,
            "principal_amount": self.principal_amount,
            "interest_rate": self.interest_rate,
            "days_held": self.days_held,
            "interest_earned": self.interest_earned,
            "calculation_date": self.calculation_date,
            "previous_calculation_date": self.previous_calculation_date,
            "calculation_method": CALCULATION_METHOD,
            "created_at": self.calculation_date,
        }
