"""Interest accrual on held escrow.

Each run credits every held escrow record whose last calculation is at
least one full day old:

    days_held = floor((now - last calculation) / 1 day)
    rate      = min(category base + performance bonus + holding bonus, max_rate)
    interest  = round(principal x rate / 365 x days_held)

Repeated runs compound daily because the last-calculation timestamp
advances each run while the principal stays fixed.

After the records are processed the run updates platform, monthly and
per-project statistics, notifies contributors, stores a batch summary
and runs the integrity pass: the platform running total is compared
with the sum of accrued interest over held escrow, and a discrepancy
over tolerance opens a critical support ticket.

Constraints:
- Escrow update, calculation row, contributor counter and platform
  running total are written in one transaction per record
- A second run on the same day is a no-op for every record
- Discrepancies are ticketed, never corrected automatically

Usage:
    service = InterestAccrualService(store, notifier, InterestConfig())
    result = await service.accrue_interest()
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from structlog import get_logger

from audit_settlement.application import collections
from audit_settlement.application.ports.document_store import (
    DocumentStoreProtocol,
    FieldFilter,
    FilterOp,
    OrderBy,
)
from audit_settlement.application.ports.notification import NotificationSenderProtocol
from audit_settlement.application.services.notification_dispatch import send_notification
from audit_settlement.config import InterestConfig
from audit_settlement.domain.models import (
    EscrowRecord,
    EscrowStatus,
    IntegrityReport,
    InterestCalculation,
    InterestRunResult,
    SupportTicket,
)
from audit_settlement.domain.primitives import (
    coerce_datetime,
    new_id,
    round_half_up,
    to_decimal,
    whole_days_between,
)
from audit_settlement.infrastructure.monitoring import EngineMetrics

logger = get_logger(__name__)

DAYS_PER_YEAR = 365
TICKET_KIND_DISCREPANCY = "financial_discrepancy"


class InterestAccrualService:
    """Daily interest accrual and ledger integrity checks."""

    def __init__(
        self,
        store: DocumentStoreProtocol,
        notifier: NotificationSenderProtocol,
        config: InterestConfig,
        metrics: EngineMetrics | None = None,
    ) -> None:
        """Initialize the interest service.

        Args:
            store: Document store holding escrow records and statistics.
            notifier: Contributor notifications.
            config: Rates, bonuses, batch sizes and tolerances.
            metrics: Optional Prometheus metrics.
        """
        self._store = store
        self._notifier = notifier
        self._config = config
        self._metrics = metrics

    # Pure calculation

    def rate_for(self, category: str, audit_score: float | None, holding_days: int) -> float:
        """Annual rate for a record, bonuses included and capped."""
        cfg = self._config
        rate = to_decimal(cfg.base_rate(category))

        if audit_score is not None:
            if audit_score >= cfg.high_performance_score:
                rate += to_decimal(cfg.high_performance_bonus)
            elif audit_score >= cfg.good_performance_score:
                rate += to_decimal(cfg.good_performance_bonus)

        if holding_days >= cfg.long_term_days:
            rate += to_decimal(cfg.long_term_bonus)
        elif holding_days >= cfg.medium_term_days:
            rate += to_decimal(cfg.medium_term_bonus)

        return float(min(rate, to_decimal(cfg.max_rate)))

    @staticmethod
    def interest_for(principal: int, rate: float, days_held: int) -> int:
        """round(principal x rate / 365 x days_held), halves away from zero."""
        return round_half_up(
            Decimal(principal) * to_decimal(rate) / Decimal(DAYS_PER_YEAR) * Decimal(days_held)
        )

    def calculate(
        self,
        record: EscrowRecord,
        category: str,
        audit_score: float | None,
        now: datetime,
    ) -> InterestCalculation | None:
        """Interest due on a record, or None when less than a day has passed."""
        start = record.accrual_start
        days_held = whole_days_between(start, now)
        if days_held <= 0:
            return None

        rate = self.rate_for(category, audit_score, whole_days_between(record.created_at, now))
        return InterestCalculation(
            id=new_id("interest"),
            escrow_id=record.id,
            project_id=record.project_id,
            contributor_id=record.contributor_id,
            principal_amount=record.amount,
            interest_rate=rate,
            days_held=days_held,
            interest_earned=self.interest_for(record.amount, rate, days_held),
            calculation_date=now,
            previous_calculation_date=start,
        )

    # Run

    async def accrue_interest(self, now: datetime | None = None) -> InterestRunResult:
        """Run one accrual pass over held escrow.

        Args:
            now: Reference time (defaults to the current UTC time).

        Returns:
            Counters for the run, including the integrity report.

        Raises:
            Exception: Only if the escrow query itself fails.
        """
        now = now or datetime.now(timezone.utc)
        result = InterestRunResult(batch_id=new_id("interest_batch"))
        log = logger.bind(batch_id=result.batch_id)

        documents = await self._store.query(
            collections.ESCROW_RECORDS,
            filters=[
                FieldFilter("status", FilterOp.EQ, EscrowStatus.HELD.value),
                FieldFilter("amount", FilterOp.GT, 0),
            ],
            order_by=[OrderBy("last_interest_calculation")],
            limit=self._config.scan_limit,
        )
        result.total_records = len(documents)

        eligible: list[EscrowRecord] = []
        for document in documents:
            try:
                record = EscrowRecord.from_dict(document)
            except (KeyError, TypeError, ValueError) as e:
                result.errors += 1
                result.failed_escrow_ids.append(document.get("id", ""))
                log.warning("escrow_record_unreadable", escrow_id=document.get("id"), error=str(e))
                continue
            if whole_days_between(record.accrual_start, now) >= 1:
                eligible.append(record)
            else:
                result.skipped += 1

        log.info("interest_run_started", scanned=len(documents), eligible=len(eligible))

        projects: dict[str, tuple[str, float | None]] = {}
        calculations: list[InterestCalculation] = []
        batch_size = self._config.processing_batch_size
        for start in range(0, len(eligible), batch_size):
            batch = eligible[start : start + batch_size]
            outcomes = await asyncio.gather(
                *(self._process_record(record, projects, now) for record in batch),
                return_exceptions=True,
            )
            for record, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    result.errors += 1
                    result.failed_escrow_ids.append(record.id)
                    log.error("interest_record_failed", escrow_id=record.id, error=str(outcome))
                elif outcome is None:
                    result.skipped += 1
                else:
                    result.processed += 1
                    result.total_interest_accrued += outcome.interest_earned
                    calculations.append(outcome)

        if calculations:
            await self._record_statistics(calculations, now)
            await self._notify_contributors(calculations, now)
        if self._metrics:
            self._metrics.record_interest(result.total_interest_accrued)

        result.integrity = await self._run_integrity_check(now)
        await self._store_batch_summary(result, now)

        log.info(
            "interest_run_completed",
            status=result.status.value,
            total_records=result.total_records,
            processed=result.processed,
            skipped=result.skipped,
            errors=result.errors,
            total_interest_accrued=result.total_interest_accrued,
        )
        return result

    async def _project_context(
        self, project_id: str, cache: dict[str, tuple[str, float | None]]
    ) -> tuple[str, float | None]:
        """Category and audit score of a project; default rate inputs on failure."""
        if project_id in cache:
            return cache[project_id]
        try:
            document = await self._store.get(collections.PROJECTS, project_id)
        except Exception as e:
            logger.warning("interest_project_lookup_failed", project_id=project_id, error=str(e))
            return "", None
        if document is None:
            context: tuple[str, float | None] = ("", None)
        else:
            context = (document.get("category", ""), document.get("audit_score"))
        cache[project_id] = context
        return context

    async def _process_record(
        self,
        record: EscrowRecord,
        projects: dict[str, tuple[str, float | None]],
        now: datetime,
    ) -> InterestCalculation | None:
        category, audit_score = await self._project_context(record.project_id, projects)
        calculation = self.calculate(record, category, audit_score, now)
        if calculation is None:
            return None

        if calculation.interest_earned <= 0:
            await self._store.update(
                collections.ESCROW_RECORDS,
                record.id,
                {"last_interest_calculation": now},
            )
            return calculation

        async with self._store.transaction() as txn:
            current = await txn.get(collections.ESCROW_RECORDS, record.id)
            if current is None or current.get("status") != EscrowStatus.HELD.value:
                return None
            if coerce_datetime(current.get("last_interest_calculation")) != (
                record.last_interest_calculation
            ):
                logger.info("interest_already_calculated", escrow_id=record.id)
                return None

            accrued = int(current.get("accrued_interest") or 0) + calculation.interest_earned
            txn.increment(
                collections.ESCROW_RECORDS,
                record.id,
                {"accrued_interest": calculation.interest_earned},
            )
            txn.update(
                collections.ESCROW_RECORDS,
                record.id,
                {
                    "last_interest_calculation": now,
                    "interest_rate": calculation.interest_rate,
                    "total_with_interest": record.amount + accrued,
                    "updated_at": now,
                },
            )
            txn.set(collections.INTEREST_CALCULATIONS, calculation.id, calculation.to_dict())
            txn.increment(
                collections.CONTRIBUTORS,
                record.contributor_id,
                {"stats.total_interest_earned": calculation.interest_earned},
            )
            txn.increment(
                collections.PLATFORM_STATS,
                collections.GLOBAL_STATS_ID,
                {"interest.total_accrued": calculation.interest_earned},
            )

        logger.info(
            "escrow_interest_accrued",
            escrow_id=record.id,
            days_held=calculation.days_held,
            interest_rate=calculation.interest_rate,
            interest_earned=calculation.interest_earned,
        )
        return calculation

    # Follow-up

    async def _record_statistics(
        self, calculations: list[InterestCalculation], now: datetime
    ) -> None:
        total = sum(c.interest_earned for c in calculations)
        by_project: dict[str, int] = defaultdict(int)
        for calculation in calculations:
            by_project[calculation.project_id] += calculation.interest_earned

        try:
            await self._store.increment(
                collections.PLATFORM_STATS,
                collections.GLOBAL_STATS_ID,
                {"interest.calculations_performed": len(calculations)},
            )
            await self._store.update(
                collections.PLATFORM_STATS,
                collections.GLOBAL_STATS_ID,
                {
                    "interest.last_calculation_run": now,
                    "interest.last_run_average_rate": (
                        sum(c.interest_rate for c in calculations) / len(calculations)
                    ),
                },
            )
            monthly: dict[str, Any] = {"interest.calculations": len(calculations)}
            if total:
                monthly["interest.monthly_accrued"] = total
            await self._store.increment(
                collections.PLATFORM_STATS,
                collections.monthly_stats_id(now.strftime("%Y-%m")),
                monthly,
            )
            for project_id, amount in by_project.items():
                if amount:
                    await self._store.increment(
                        collections.PROJECTS,
                        project_id,
                        {"escrow.total_interest_accrued": amount},
                    )
        except Exception as e:
            logger.error(
                "interest_statistics_update_failed",
                calculations=len(calculations),
                error=str(e),
            )

    async def _notify_contributors(
        self, calculations: list[InterestCalculation], now: datetime
    ) -> int:
        grouped: dict[str, list[InterestCalculation]] = defaultdict(list)
        for calculation in calculations:
            grouped[calculation.contributor_id].append(calculation)

        sends = []
        for contributor_id, items in grouped.items():
            total = sum(c.interest_earned for c in items)
            if total < self._config.notification_threshold:
                continue
            sends.append(
                send_notification(
                    self._notifier,
                    contributor_id,
                    "interest_earned",
                    {
                        "total_interest_earned": total,
                        "project_count": len({c.project_id for c in items}),
                        "calculations": [
                            {
                                "project_id": c.project_id,
                                "interest_earned": c.interest_earned,
                                "days_held": c.days_held,
                                "rate": c.interest_rate,
                            }
                            for c in items
                        ],
                        "calculation_date": now.isoformat(),
                    },
                )
            )
        delivered = sum(1 for ok in await asyncio.gather(*sends) if ok)
        logger.info("interest_notifications_sent", contributors=len(sends), delivered=delivered)
        return delivered

    async def _store_batch_summary(self, result: InterestRunResult, now: datetime) -> None:
        summary = result.to_dict()
        summary["completed_at"] = now
        try:
            await self._store.set(collections.INTEREST_BATCH_RESULTS, result.batch_id, summary)
        except Exception as e:
            logger.error("interest_batch_summary_failed", batch_id=result.batch_id, error=str(e))

    async def _run_integrity_check(self, now: datetime) -> IntegrityReport | None:
        try:
            return await self.check_integrity(now)
        except Exception as e:
            logger.error("interest_integrity_check_failed", error=str(e))
            return None

    # Integrity

    async def check_integrity(self, now: datetime | None = None) -> IntegrityReport:
        """Compare the platform running total with accrued interest on held escrow.

        Returns:
            The comparison; ``ticket_id`` is set when a support ticket was
            opened for a discrepancy over tolerance.
        """
        now = now or datetime.now(timezone.utc)
        held, stats = await asyncio.gather(
            self._store.query(
                collections.ESCROW_RECORDS,
                filters=[FieldFilter("status", FilterOp.EQ, EscrowStatus.HELD.value)],
            ),
            self._store.get(collections.PLATFORM_STATS, collections.GLOBAL_STATS_ID),
        )
        recorded = int(((stats or {}).get("interest") or {}).get("total_accrued") or 0)
        calculated = sum(int(record.get("accrued_interest") or 0) for record in held)
        discrepancy = abs(recorded - calculated)
        passed = discrepancy <= self._config.max_discrepancy

        ticket_id = None
        if not passed:
            if self._metrics:
                self._metrics.record_integrity_discrepancy()
            logger.critical(
                "interest_discrepancy_detected",
                recorded_total=recorded,
                calculated_total=calculated,
                discrepancy=discrepancy,
                records_checked=len(held),
            )
            ticket = SupportTicket(
                id=new_id("support"),
                kind=TICKET_KIND_DISCREPANCY,
                title="Interest Calculation Discrepancy Detected",
                description=(
                    f"Automated validation detected a {discrepancy} cent discrepancy "
                    "in interest calculations."
                ),
                created_at=now,
                data={
                    "recorded_total": recorded,
                    "calculated_total": calculated,
                    "discrepancy": discrepancy,
                    "escrow_records_affected": len(held),
                },
            )
            await self._store.set(collections.SUPPORT_TICKETS, ticket.id, ticket.to_dict())
            ticket_id = ticket.id

        logger.info(
            "interest_integrity_checked",
            records_checked=len(held),
            recorded_total=recorded,
            calculated_total=calculated,
            discrepancy=discrepancy,
            passed=passed,
        )
        return IntegrityReport(
            recorded_total=recorded,
            calculated_total=calculated,
            discrepancy=discrepancy,
            records_checked=len(held),
            passed=passed,
            ticket_id=ticket_id,
        )
