"""Auditor profile model.

An auditor profile carries everything the matcher needs: eligibility
flags, qualifications, capacity, accepted fee range, preferences and
historical performance. Workload counters are maintained by the
assignment lifecycle through atomic increments.

Constraints:
- Only active, identity-verified, auditing-enabled auditors are candidates
- Fee range bounds are inclusive, in minor units
- Workload counters change only through increments, never overwrites
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

# Preferred complexity value meaning "no preference"
ANY_COMPLEXITY = "any"


class AuditorStatus(str, Enum):
    """Account status of an auditor."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class AuditorPerformance:
    """Historical audit performance.

    Attributes:
        average_score: Mean score of completed audits, None if no history.
        average_completion_days: Mean days from acceptance to report.
        completed_audits: Number of completed audits.
    """

    average_score: float | None = None
    average_completion_days: float | None = None
    completed_audits: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "AuditorPerformance":
        data = data or {}
        return cls(
            average_score=data.get("average_score"),
            average_completion_days=data.get("average_completion_days"),
            completed_audits=int(data.get("completed_audits", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "average_score": self.average_score,
            "average_completion_days": self.average_completion_days,
            "completed_audits": self.completed_audits,
        }


@dataclass(frozen=True)
class AuditorWorkload:
    """Live workload counters.

    Attributes:
        current_audits: Audits accepted and not yet completed.
        pending_assignments: Assignments awaiting this auditor's acceptance.
        expired_assignments: Assignments this auditor let expire.
    """

    current_audits: int = 0
    pending_assignments: int = 0
    expired_assignments: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "AuditorWorkload":
        data = data or {}
        return cls(
            current_audits=int(data.get("current_audits", 0)),
            pending_assignments=int(data.get("pending_assignments", 0)),
            expired_assignments=int(data.get("expired_assignments", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_audits": self.current_audits,
            "pending_assignments": self.pending_assignments,
            "expired_assignments": self.expired_assignments,
        }


@dataclass(frozen=True)
class AuditorWorkloadDelta:
    """Typed increment for workload counters.

    Zero deltas are omitted so only touched counters are written.
    """

    current_audits: int = 0
    pending_assignments: int = 0
    expired_assignments: int = 0

    def to_increments(self) -> dict[str, int]:
        deltas = {
            "workload.current_audits": self.current_audits,
            "workload.pending_assignments": self.pending_assignments,
            "workload.expired_assignments": self.expired_assignments,
        }
        return {path: delta for path, delta in deltas.items() if delta != 0}


@dataclass(frozen=True)
class AuditorProfile:
    """An auditor as seen by the matching engine.

    Attributes:
        id: Auditor identifier.
        display_name: Name used in notifications.
        status: Account status.
        identity_verified: Identity check passed.
        auditing_enabled: Auditor accepts new work.
        qualifications: Held qualifications.
        specializations: Declared specializations.
        max_concurrent_audits: Capacity; None means the configured default.
        min_audit_fee: Lowest accepted fee (minor units).
        max_audit_fee: Highest accepted fee; None means unbounded.
        preferred_complexity: Required complexity, or None / "any".
        performance: Historical performance.
        workload: Live counters.
        category_experience: Completed audits per project category.
    """

    id: str
    display_name: str = ""
    status: AuditorStatus = AuditorStatus.ACTIVE
    identity_verified: bool = False
    auditing_enabled: bool = False
    qualifications: tuple[str, ...] = ()
    specializations: tuple[str, ...] = ()
    max_concurrent_audits: int | None = None
    min_audit_fee: int = 0
    max_audit_fee: int | None = None
    preferred_complexity: str | None = None
    performance: AuditorPerformance = field(default_factory=AuditorPerformance)
    workload: AuditorWorkload = field(default_factory=AuditorWorkload)
    category_experience: Mapping[str, int] = field(default_factory=dict)

    def capacity(self, default_max: int) -> int:
        """Maximum concurrent audits, falling back to the default."""
        return self.max_concurrent_audits or default_max

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditorProfile":
        return cls(
            id=data["id"],
            display_name=data.get("display_name", ""),
            status=AuditorStatus(data.get("status", AuditorStatus.ACTIVE.value)),
            identity_verified=bool(data.get("identity_verified", False)),
            auditing_enabled=bool(data.get("auditing_enabled", False)),
            qualifications=tuple(data.get("qualifications") or ()),
            specializations=tuple(data.get("specializations") or ()),
            max_concurrent_audits=data.get("max_concurrent_audits"),
            min_audit_fee=int(data.get("min_audit_fee") or 0),
            max_audit_fee=data.get("max_audit_fee"),
            preferred_complexity=data.get("preferred_complexity"),
            performance=AuditorPerformance.from_dict(data.get("performance")),
            workload=AuditorWorkload.from_dict(data.get("workload")),
            category_experience=dict(data.get("category_experience") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "status": self.status.value,
            "identity_verified": self.identity_verified,
            "auditing_enabled": self.auditing_enabled,
            "qualifications": list(self.qualifications),
            "specializations": list(self.specializations),
            "max_concurrent_audits": self.max_concurrent_audits,
            "min_audit_fee": self.min_audit_fee,
            "max_audit_fee": self.max_audit_fee,
            "preferred_complexity": self.preferred_complexity,
            "performance": self.performance.to_dict(),
            "workload": self.workload.to_dict(),
            "category_experience": dict(self.category_experience),
        }

