"""Auditor compensation.

final_amount = round(base_amount x quality_multiplier x timing_multiplier)

- quality_multiplier: 1.1 at score >= 90, 0.9 below 75, else 1.0
- timing_multiplier: 1.05 when the report lands more than 2 days before
  the audit deadline (days counted rounded up), else 1.0

Persistence (append-only record plus the audit's compensation fields)
is best-effort relative to the report submission: when it fails the
computed amount is still returned, with status ``pending``.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from structlog import get_logger

from audit_settlement.application import collections
from audit_settlement.application.ports.document_store import DocumentStoreProtocol
from audit_settlement.config import CompensationConfig
from audit_settlement.domain.models import (
    Audit,
    AuditCompensationPatch,
    CompensationBreakdown,
    CompensationOutcome,
    CompensationRecord,
    CompensationState,
    CompensationStatus,
)
from audit_settlement.domain.primitives import ONE_DAY, new_id, round_half_up, to_decimal

logger = get_logger(__name__)


class CompensationCalculator:
    """Pure compensation arithmetic."""

    def __init__(self, config: CompensationConfig) -> None:
        self._config = config

    def quality_multiplier(self, score: float) -> float:
        if score >= self._config.excellent_score:
            return self._config.excellent_multiplier
        if score < self._config.poor_score:
            return self._config.poor_multiplier
        return 1.0

    def timing_multiplier(self, days_early: int) -> float:
        if days_early > self._config.early_days:
            return self._config.early_multiplier
        return 1.0

    @staticmethod
    def days_early(deadline: datetime, completed_at: datetime) -> int:
        """Days between completion and deadline, rounded up."""
        return math.ceil((deadline - completed_at) / ONE_DAY)

    def calculate(
        self, base_amount: int, score: float, deadline: datetime, completed_at: datetime
    ) -> CompensationBreakdown:
        """Compute the final amount for an audit.

        Args:
            base_amount: Agreed fee (minor units).
            score: Overall report score.
            deadline: Audit deadline.
            completed_at: Report submission time.

        Returns:
            The multipliers and the rounded final amount.
        """
        days_early = self.days_early(deadline, completed_at)
        quality = self.quality_multiplier(score)
        timing = self.timing_multiplier(days_early)
        final_amount = round_half_up(
            to_decimal(base_amount) * to_decimal(quality) * to_decimal(timing)
        )
        return CompensationBreakdown(
            base_amount=base_amount,
            quality_multiplier=quality,
            timing_multiplier=timing,
            final_amount=final_amount,
            days_early=days_early,
        )


class CompensationService:
    """Calculates and records an auditor's compensation for a completed audit."""

    def __init__(
        self,
        store: DocumentStoreProtocol,
        config: CompensationConfig,
        calculator: CompensationCalculator | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._calculator = calculator or CompensationCalculator(config)

    async def compensate(
        self,
        audit: Audit,
        score: float,
        time_spent_hours: float,
        completed_at: datetime,
    ) -> CompensationOutcome:
        """Calculate compensation and persist it.

        The compensation record and the audit's compensation fields are
        written in one transaction.

        Args:
            audit: The completed audit (base fee, deadline, auditor).
            score: Overall report score.
            time_spent_hours: Hours the auditor reported.
            completed_at: Report submission time.

        Returns:
            ``calculated`` with the record id, or ``pending`` with the
            computed amount when persistence failed. Never raises for
            store failures.
        """
        log = logger.bind(audit_id=audit.id, auditor_id=audit.auditor_id)
        breakdown = self._calculator.calculate(
            audit.compensation.amount, score, audit.deadline, completed_at
        )

        record = CompensationRecord(
            id=new_id("comp"),
            audit_id=audit.id,
            auditor_id=audit.auditor_id,
            project_id=audit.project_id,
            base_amount=breakdown.base_amount,
            final_amount=breakdown.final_amount,
            quality_multiplier=breakdown.quality_multiplier,
            timing_multiplier=breakdown.timing_multiplier,
            time_spent_hours=time_spent_hours,
            hourly_rate=(
                round_half_up(to_decimal(breakdown.final_amount) / to_decimal(time_spent_hours))
                if time_spent_hours > 0
                else 0
            ),
            created_at=completed_at,
            due_date=completed_at + timedelta(days=self._config.payment_due_days),
        )

        try:
            async with self._store.transaction() as txn:
                txn.set(collections.AUDITOR_COMPENSATIONS, record.id, record.to_dict())
                txn.update(
                    collections.AUDITS,
                    audit.id,
                    AuditCompensationPatch(
                        final_amount=breakdown.final_amount,
                        status=CompensationState.CALCULATED,
                        quality_multiplier=breakdown.quality_multiplier,
                        timing_multiplier=breakdown.timing_multiplier,
                        calculated_at=completed_at,
                        time_spent_hours=time_spent_hours,
                    ).to_fields(),
                )
        except Exception as e:
            log.error(
                "compensation_persist_failed",
                final_amount=breakdown.final_amount,
                error=str(e),
            )
            return CompensationOutcome(
                status=CompensationStatus.PENDING,
                amount=breakdown.final_amount,
                breakdown=breakdown,
            )

        log.info(
            "auditor_compensation_calculated",
            record_id=record.id,
            base_amount=breakdown.base_amount,
            final_amount=breakdown.final_amount,
            quality_multiplier=breakdown.quality_multiplier,
            timing_multiplier=breakdown.timing_multiplier,
        )
        return CompensationOutcome(
            status=CompensationStatus.CALCULATED,
            amount=breakdown.final_amount,
            breakdown=breakdown,
            record_id=record.id,
        )
