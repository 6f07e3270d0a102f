"""Escrow models: contributions with release schedules, and escrow records.

A contribution holds escrowed funds released per milestone according to
its release schedule. An escrow record is the interest-bearing ledger
entry for held funds.

Constraints:
- A release schedule entry's ``released`` flag, once true, never changes
- Amounts are integers in minor units
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from audit_settlement.domain.primitives import coerce_datetime, require_datetime


@dataclass(frozen=True)
class ReleaseScheduleEntry:
    """One milestone-tagged slice of a contribution's escrow.

    Attributes:
        index: Position in the schedule (used to address the entry).
        milestone_id: Milestone that releases this slice.
        amount: Amount released (minor units).
        released: Whether the slice was transferred.
        released_at: When it was transferred.
        transfer_id: Payment service reference.
    """

    index: int
    milestone_id: str
    amount: int
    released: bool = False
    released_at: datetime | None = None
    transfer_id: str | None = None

    @property
    def path(self) -> str:
        """Document path of this entry inside its contribution."""
        return f"escrow.release_schedule.{self.index}"

    @classmethod
    def from_dict(cls, index: int, data: Mapping[str, Any]) -> "ReleaseScheduleEntry":
        return cls(
            index=index,
            milestone_id=data["milestone_id"],
            amount=int(data.get("amount") or 0),
            released=bool(data.get("released", False)),
            released_at=coerce_datetime(data.get("released_at")),
            transfer_id=data.get("transfer_id"),
        )


class ContributionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class Contribution:
    """A contributor's confirmed payment into a project."""

    id: str
    project_id: str
    contributor_id: str
    status: ContributionStatus
    escrow_held: bool
    currency: str = "eur"
    release_schedule: tuple[ReleaseScheduleEntry, ...] = ()

    def open_entry_for(self, milestone_id: str) -> ReleaseScheduleEntry | None:
        """First unreleased schedule entry for a milestone, if any."""
        for entry in self.release_schedule:
            if entry.milestone_id == milestone_id and not entry.released:
                return entry
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Contribution":
        escrow = data.get("escrow") or {}
        return cls(
            id=data["id"],
            project_id=data.get("project_id", ""),
            contributor_id=data.get("contributor_id", ""),
            status=ContributionStatus(data.get("status", ContributionStatus.PENDING.value)),
            escrow_held=bool(escrow.get("held", False)),
            currency=data.get("currency", "eur"),
            release_schedule=tuple(
                ReleaseScheduleEntry.from_dict(i, entry)
                for i, entry in enumerate(escrow.get("release_schedule") or ())
            ),
        )


class EscrowStatus(str, Enum):
    HELD = "held"
    RELEASED = "released"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class EscrowRecord:
    """Interest-bearing escrow ledger entry.

    Attributes:
        id: Record identifier.
        project_id: Project holding the funds.
        contributor_id: Contributor who earns the interest.
        amount: Principal (minor units).
        status: Escrow status.
        created_at: When the funds were first held.
        accrued_interest: Running total of interest earned.
        last_interest_calculation: When interest was last calculated.
    """

    id: str
    project_id: str
    contributor_id: str
    amount: int
    status: EscrowStatus
    created_at: datetime
    accrued_interest: int = 0
    last_interest_calculation: datetime | None = None

    @property
    def accrual_start(self) -> datetime:
        """Point from which the next run measures days held."""
        return self.last_interest_calculation or self.created_at

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EscrowRecord":
        return cls(
            id=data["id"],
            project_id=data.get("project_id", ""),
            contributor_id=data.get("contributor_id", ""),
            amount=int(data.get("amount") or 0),
            status=EscrowStatus(data.get("status", EscrowStatus.HELD.value)),
            created_at=require_datetime(data.get("created_at"), "created_at"),
            accrued_interest=int(data.get("accrued_interest") or 0),
            last_interest_calculation=coerce_datetime(data.get("last_interest_calculation")),
        )
