"""Audit settlement engine configuration.

This module defines one immutable configuration object per engine
component, aggregated into ``EngineConfig``. Configs are injected into
services at construction; nothing reads tunables from module state at
call time.

Environment Variables (Matching):
- AUDIT_DEFAULT_MAX_CONCURRENT: Capacity when an auditor sets none (default: 3)
- AUDIT_MAX_AUDITORS_PER_REQUEST: Top-N candidates returned (default: 5)
- AUDIT_CANDIDATE_POOL_SIZE: Candidates read per match (default: 100)

Environment Variables (Assignment):
- AUDIT_ACCEPTANCE_WINDOW_HOURS: Hours an auditor has to accept (default: 48)
- AUDIT_REMINDER_WINDOW_HOURS: Reminder window before the deadline (default: 12)
- AUDIT_QUEUE_BATCH_SIZE: Pending requests handled per run (default: 50)
- AUDIT_SWEEP_BATCH_SIZE: Pending-acceptance assignments checked per run (default: 100)
- AUDIT_MIN_LEAD_TIME_HOURS: Requests due sooner are not auto-assigned (default: 24)
- AUDIT_MAX_ASSIGNMENT_CYCLES: Expiries before escalation (default: 3)

Environment Variables (Quality gate):
- AUDIT_MAX_SCORE_VARIANCE: Allowed |score - criteria average| (default: 10)
- AUDIT_MIN_APPROVAL_SCORE: Lowest score for approval (default: 70)
- AUDIT_MAX_REJECTION_SCORE: Highest score for rejection (default: 50)

Environment Variables (Settlement and compensation):
- SETTLEMENT_BATCH_SIZE: Concurrent transfers per batch (default: 5)
- AUDIT_COMPENSATION_DUE_DAYS: Days until compensation is due (default: 7)

Environment Variables (Interest):
- INTEREST_PROCESSING_BATCH_SIZE: Records per processing batch (default: 25)
- INTEREST_SCAN_LIMIT: Held records scanned per run (default: 500)
- INTEREST_MAX_RATE: Annual rate cap (default: 0.05)
- INTEREST_MAX_DISCREPANCY: Integrity tolerance in cents (default: 100)
- INTEREST_NOTIFICATION_THRESHOLD: Minimum cents to notify (default: 100)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


def _get_int_env(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name.
        default: Default value if not set or invalid.

    Returns:
        Parsed integer value or default.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    """Get float environment variable with default."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool_env(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class MatchingConfig:
    """Auditor matching and scoring parameters.

    Attributes:
        default_max_concurrent_audits: Capacity for auditors without one.
        max_auditors_per_request: Top-N candidates returned.
        candidate_pool_size: Maximum auditor profiles read per match.
        specialization_points: Points per matching specialization.
        excellent_score / excellent_score_points: +20 at average score >= 90.
        good_score / good_score_points: +10 at average score >= 80.
        fast_completion_days / fast_completion_points: +15 at <= 7 days.
        timely_completion_days / timely_completion_points: +10 at <= 14 days.
        capacity_points: Weight of spare capacity.
        max_experience_points: Cap on category experience points.
    """

    default_max_concurrent_audits: int = 3
    max_auditors_per_request: int = 5
    candidate_pool_size: int = 100
    specialization_points: int = 10
    excellent_score: float = 90
    excellent_score_points: int = 20
    good_score: float = 80
    good_score_points: int = 10
    fast_completion_days: float = 7
    fast_completion_points: int = 15
    timely_completion_days: float = 14
    timely_completion_points: int = 10
    capacity_points: int = 15
    max_experience_points: int = 10

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.default_max_concurrent_audits < 1:
            raise ValueError(
                "default_max_concurrent_audits must be positive, "
                f"got {self.default_max_concurrent_audits}"
            )
        if self.max_auditors_per_request < 1:
            raise ValueError(
                f"max_auditors_per_request must be positive, got {self.max_auditors_per_request}"
            )
        if self.candidate_pool_size < self.max_auditors_per_request:
            raise ValueError(
                f"candidate_pool_size ({self.candidate_pool_size}) must be at least "
                f"max_auditors_per_request ({self.max_auditors_per_request})"
            )

    @classmethod
    def from_environment(cls) -> "MatchingConfig":
        return cls(
            default_max_concurrent_audits=_get_int_env("AUDIT_DEFAULT_MAX_CONCURRENT", 3),
            max_auditors_per_request=_get_int_env("AUDIT_MAX_AUDITORS_PER_REQUEST", 5),
            candidate_pool_size=_get_int_env("AUDIT_CANDIDATE_POOL_SIZE", 100),
        )


# Criteria every new audit starts with: (name, required)
DEFAULT_AUDIT_CRITERIA: tuple[tuple[str, bool], ...] = (
    ("deliverables_quality", True),
    ("budget_compliance", True),
    ("timeline_adherence", True),
    ("impact_evidence", True),
    ("documentation", False),
)


@dataclass(frozen=True)
class AssignmentConfig:
    """Assignment lifecycle parameters.

    Attributes:
        acceptance_window_hours: Time an auditor has to accept an offer.
        reminder_window_hours: Offers expiring within this window get a reminder.
        queue_batch_size: Pending requests handled per queue run.
        sweep_batch_size: Pending-acceptance assignments checked per sweep.
        min_lead_time_hours: Requests due within this lead time are skipped.
        max_assignment_cycles: Expired offers before repeated_rejections escalation.
        escalate_urgent_on_expiry: Escalate urgent requests on their first expiry.
        default_criteria: Criteria attached to audits created on acceptance.
    """

    acceptance_window_hours: int = 48
    reminder_window_hours: int = 12
    queue_batch_size: int = 50
    sweep_batch_size: int = 100
    min_lead_time_hours: int = 24
    max_assignment_cycles: int = 3
    escalate_urgent_on_expiry: bool = True
    default_criteria: tuple[tuple[str, bool], ...] = DEFAULT_AUDIT_CRITERIA

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.acceptance_window_hours < 1:
            raise ValueError(
                f"acceptance_window_hours must be positive, got {self.acceptance_window_hours}"
            )
        if not 0 <= self.reminder_window_hours < self.acceptance_window_hours:
            raise ValueError(
                f"reminder_window_hours ({self.reminder_window_hours}) must be between 0 "
                f"and acceptance_window_hours ({self.acceptance_window_hours})"
            )
        if self.queue_batch_size < 1:
            raise ValueError(f"queue_batch_size must be positive, got {self.queue_batch_size}")
        if self.sweep_batch_size < 1:
            raise ValueError(f"sweep_batch_size must be positive, got {self.sweep_batch_size}")
        if self.max_assignment_cycles < 1:
            raise ValueError(
                f"max_assignment_cycles must be positive, got {self.max_assignment_cycles}"
            )

    @classmethod
    def from_environment(cls) -> "AssignmentConfig":
        return cls(
            acceptance_window_hours=_get_int_env("AUDIT_ACCEPTANCE_WINDOW_HOURS", 48),
            reminder_window_hours=_get_int_env("AUDIT_REMINDER_WINDOW_HOURS", 12),
            queue_batch_size=_get_int_env("AUDIT_QUEUE_BATCH_SIZE", 50),
            sweep_batch_size=_get_int_env("AUDIT_SWEEP_BATCH_SIZE", 100),
            min_lead_time_hours=_get_int_env("AUDIT_MIN_LEAD_TIME_HOURS", 24),
            max_assignment_cycles=_get_int_env("AUDIT_MAX_ASSIGNMENT_CYCLES", 3),
            escalate_urgent_on_expiry=_get_bool_env("AUDIT_ESCALATE_URGENT_ON_EXPIRY", True),
        )


@dataclass(frozen=True)
class QualityGateConfig:
    """Report quality-gate thresholds.

    Attributes:
        max_score_variance: Allowed distance between score and criteria average.
        min_approval_score: Lowest score an approval may carry.
        max_rejection_score: Highest score a rejection may carry.
        weaknesses_required_below: Scores under this need documented weaknesses.
        min_revision_recommendations: Recommendations needed for needs_revision.
    """

    max_score_variance: float = 10
    min_approval_score: float = 70
    max_rejection_score: float = 50
    weaknesses_required_below: float = 75
    min_revision_recommendations: int = 2

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_score_variance < 0:
            raise ValueError(
                f"max_score_variance must be non-negative, got {self.max_score_variance}"
            )
        if self.max_rejection_score >= self.min_approval_score:
            raise ValueError(
                f"max_rejection_score ({self.max_rejection_score}) must be below "
                f"min_approval_score ({self.min_approval_score})"
            )

    @classmethod
    def from_environment(cls) -> "QualityGateConfig":
        return cls(
            max_score_variance=_get_float_env("AUDIT_MAX_SCORE_VARIANCE", 10),
            min_approval_score=_get_float_env("AUDIT_MIN_APPROVAL_SCORE", 70),
            max_rejection_score=_get_float_env("AUDIT_MAX_REJECTION_SCORE", 50),
        )


@dataclass(frozen=True)
class SettlementConfig:
    """Escrow settlement parameters.

    Attributes:
        batch_size: Transfers in flight at once.
        default_payout_destination: Used when a project has no destination.
    """

    batch_size: int = 5
    default_payout_destination: str | None = None

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

    @classmethod
    def from_environment(cls) -> "SettlementConfig":
        return cls(
            batch_size=_get_int_env("SETTLEMENT_BATCH_SIZE", 5),
            default_payout_destination=os.environ.get("SETTLEMENT_DEFAULT_DESTINATION"),
        )


@dataclass(frozen=True)
class CompensationConfig:
    """Auditor compensation multipliers.

    Attributes:
        excellent_score: Score at or above which the quality bonus applies.
        excellent_multiplier: Quality bonus multiplier.
        poor_score: Score below which the quality penalty applies.
        poor_multiplier: Quality penalty multiplier.
        early_days: Completing more than this many days early earns the bonus.
        early_multiplier: Timing bonus multiplier.
        payment_due_days: Days from calculation to payment.
    """

    excellent_score: float = 90
    excellent_multiplier: float = 1.1
    poor_score: float = 75
    poor_multiplier: float = 0.9
    early_days: int = 2
    early_multiplier: float = 1.05
    payment_due_days: int = 7

    def __post_init__(self) -> None:
        if self.poor_score > self.excellent_score:
            raise ValueError(
                f"poor_score ({self.poor_score}) must not exceed "
                f"excellent_score ({self.excellent_score})"
            )
        if self.payment_due_days < 0:
            raise ValueError(
                f"payment_due_days must be non-negative, got {self.payment_due_days}"
            )

    @classmethod
    def from_environment(cls) -> "CompensationConfig":
        return cls(payment_due_days=_get_int_env("AUDIT_COMPENSATION_DUE_DAYS", 7))


_CATEGORY_RATES = MappingProxyType(
    {
        "environment": 0.03,
        "education": 0.025,
        "health": 0.035,
        "community": 0.02,
        "technology": 0.015,
    }
)


@dataclass(frozen=True)
class InterestConfig:
    """Interest accrual parameters.

    Attributes:
        category_rates: Annual base rate by project category.
        default_rate: Base rate for categories not in the table.
        high_performance_score / high_performance_bonus: +0.5% at score >= 90.
        good_performance_score / good_performance_bonus: +0.25% at score >= 80.
        long_term_days / long_term_bonus: +0.5% held >= 180 days.
        medium_term_days / medium_term_bonus: +0.25% held >= 90 days.
        max_rate: Cap applied after bonuses.
        processing_batch_size: Records processed concurrently.
        scan_limit: Held records read per run.
        max_discrepancy: Integrity tolerance (minor units).
        notification_threshold: Interest per contributor worth notifying.
    """

    category_rates: Mapping[str, float] = field(default_factory=lambda: _CATEGORY_RATES)
    default_rate: float = 0.02
    high_performance_score: float = 90
    high_performance_bonus: float = 0.005
    good_performance_score: float = 80
    good_performance_bonus: float = 0.0025
    long_term_days: int = 180
    long_term_bonus: float = 0.005
    medium_term_days: int = 90
    medium_term_bonus: float = 0.0025
    max_rate: float = 0.05
    processing_batch_size: int = 25
    scan_limit: int = 500
    max_discrepancy: int = 100
    notification_threshold: int = 100

    def __post_init__(self) -> None:
        """Validate configuration values."""
        for category, rate in self.category_rates.items():
            if rate < 0:
                raise ValueError(f"rate for {category} must be non-negative, got {rate}")
        if self.max_rate <= 0:
            raise ValueError(f"max_rate must be positive, got {self.max_rate}")
        if self.processing_batch_size < 1:
            raise ValueError(
                f"processing_batch_size must be positive, got {self.processing_batch_size}"
            )
        if self.scan_limit < 1:
            raise ValueError(f"scan_limit must be positive, got {self.scan_limit}")
        if self.max_discrepancy < 0:
            raise ValueError(
                f"max_discrepancy must be non-negative, got {self.max_discrepancy}"
            )

    def base_rate(self, category: str) -> float:
        return self.category_rates.get(category, self.default_rate)

    @classmethod
    def from_environment(cls) -> "InterestConfig":
        return cls(
            max_rate=_get_float_env("INTEREST_MAX_RATE", 0.05),
            processing_batch_size=_get_int_env("INTEREST_PROCESSING_BATCH_SIZE", 25),
            scan_limit=_get_int_env("INTEREST_SCAN_LIMIT", 500),
            max_discrepancy=_get_int_env("INTEREST_MAX_DISCREPANCY", 100),
            notification_threshold=_get_int_env("INTEREST_NOTIFICATION_THRESHOLD", 100),
        )


@dataclass(frozen=True)
class EngineConfig:
    """All engine configuration, one section per component."""

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    assignment: AssignmentConfig = field(default_factory=AssignmentConfig)
    quality_gate: QualityGateConfig = field(default_factory=QualityGateConfig)
    settlement: SettlementConfig = field(default_factory=SettlementConfig)
    compensation: CompensationConfig = field(default_factory=CompensationConfig)
    interest: InterestConfig = field(default_factory=InterestConfig)

    @classmethod
    def from_environment(cls) -> "EngineConfig":
        """Create config from environment variables with defaults.

        Returns:
            EngineConfig with every section read from the environment.
        """
        return cls(
            matching=MatchingConfig.from_environment(),
            assignment=AssignmentConfig.from_environment(),
            quality_gate=QualityGateConfig.from_environment(),
            settlement=SettlementConfig.from_environment(),
            compensation=CompensationConfig.from_environment(),
            interest=InterestConfig.from_environment(),
        )


# Default production config
DEFAULT_ENGINE_CONFIG = EngineConfig()

# Testing config with small batches so batching paths are exercised
TEST_ENGINE_CONFIG = EngineConfig(
    assignment=AssignmentConfig(queue_batch_size=10),
    settlement=SettlementConfig(batch_size=2, default_payout_destination="acct_test"),
    interest=InterestConfig(processing_batch_size=2, scan_limit=50),
)
