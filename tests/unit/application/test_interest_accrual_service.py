"""Unit tests for InterestAccrualService."""

import asyncio
from datetime import timedelta
from typing import Any

import pytest

from audit_settlement.application import collections
from audit_settlement.application.services import InterestAccrualService
from audit_settlement.config import InterestConfig
from audit_settlement.domain.models import EscrowRecord, OperationStatus
from audit_settlement.infrastructure.monitoring import EngineMetrics
from audit_settlement.infrastructure.stubs import (
    InMemoryDocumentStore,
    NotificationSenderStub,
)
from tests.helpers import NOW, escrow_doc, metric_value, project_doc


@pytest.fixture
def service(
    store: InMemoryDocumentStore,
    notifier: NotificationSenderStub,
    metrics: EngineMetrics,
) -> InterestAccrualService:
    store.seed(collections.PROJECTS, "proj-1", project_doc())
    return InterestAccrualService(
        store, notifier, InterestConfig(processing_batch_size=2), metrics
    )


class TestRate:
    @pytest.mark.parametrize(
        "category,score,holding_days,expected",
        [
            ("environment", None, 10, 0.03),
            ("education", None, 10, 0.025),
            ("health", None, 10, 0.035),
            ("community", None, 10, 0.02),
            ("technology", None, 10, 0.015),
            ("unknown", None, 10, 0.02),
            ("technology", 95, 200, 0.025),
            ("environment", 85, 100, 0.035),
            ("technology", 79.9, 89, 0.015),
            ("health", 92, 200, 0.045),
        ],
    )
    def test_base_rate_plus_bonuses(
        self,
        service: InterestAccrualService,
        category: str,
        score: float | None,
        holding_days: int,
        expected: float,
    ) -> None:
        assert service.rate_for(category, score, holding_days) == pytest.approx(expected)

    def test_rate_is_capped(
        self, store: InMemoryDocumentStore, notifier: NotificationSenderStub
    ) -> None:
        service = InterestAccrualService(store, notifier, InterestConfig(max_rate=0.04))
        assert service.rate_for("health", 92, 200) == pytest.approx(0.04)


class TestInterestFor:
    def test_ten_days_on_one_thousand(self) -> None:
        assert InterestAccrualService.interest_for(100_000, 0.03, 10) == 82

    def test_one_day_on_one_thousand(self) -> None:
        assert InterestAccrualService.interest_for(100_000, 0.03, 1) == 8

    def test_half_cent_rounds_up(self) -> None:
        assert InterestAccrualService.interest_for(18_250, 0.01, 1) == 1

    def test_small_principal_earns_nothing(self) -> None:
        assert InterestAccrualService.interest_for(1_000, 0.02, 1) == 0


class TestCalculate:
    def test_first_calculation_runs_from_creation(self, service: InterestAccrualService) -> None:
        record = EscrowRecord.from_dict(escrow_doc("e1"))

        calculation = service.calculate(record, "environment", None, NOW)

        assert calculation.days_held == 10
        assert calculation.interest_earned == 82
        assert calculation.previous_calculation_date == NOW - timedelta(days=10)
        assert calculation.total_amount == 100_082

    def test_less_than_a_day_is_nothing(self, service: InterestAccrualService) -> None:
        record = EscrowRecord.from_dict(
            escrow_doc("e1", last_interest_calculation=NOW - timedelta(hours=23))
        )
        assert service.calculate(record, "environment", None, NOW) is None

    def test_holding_bonus_measured_from_creation(self, service: InterestAccrualService) -> None:
        record = EscrowRecord.from_dict(
            escrow_doc(
                "e1",
                created_at=NOW - timedelta(days=100),
                last_interest_calculation=NOW - timedelta(days=3),
            )
        )

        calculation = service.calculate(record, "environment", None, NOW)

        assert calculation.days_held == 3
        assert calculation.interest_rate == pytest.approx(0.0325)
        assert calculation.interest_earned == 27


class TestAccrueInterest:
    @pytest.mark.asyncio
    async def test_credits_held_record(
        self,
        store: InMemoryDocumentStore,
        metrics: EngineMetrics,
        service: InterestAccrualService,
    ) -> None:
        store.seed(collections.ESCROW_RECORDS, "e1", escrow_doc("e1"))

        result = await service.accrue_interest(NOW)

        assert result.status == OperationStatus.OK
        assert result.total_records == 1
        assert result.processed == 1
        assert result.total_interest_accrued == 82

        escrow = store.peek(collections.ESCROW_RECORDS, "e1")
        assert escrow["accrued_interest"] == 82
        assert escrow["last_interest_calculation"] == NOW
        assert escrow["interest_rate"] == pytest.approx(0.03)
        assert escrow["total_with_interest"] == 100_082

        [calculation] = store.documents(collections.INTEREST_CALCULATIONS).values()
        assert calculation["escrow_id"] == "e1"
        assert calculation["days_held"] == 10
        assert calculation["calculation_method"] == "compound_daily"

        contributor = store.peek(collections.CONTRIBUTORS, "contributor-1")
        assert contributor["stats"]["total_interest_earned"] == 82

        platform = store.peek(collections.PLATFORM_STATS, collections.GLOBAL_STATS_ID)["interest"]
        assert platform["total_accrued"] == 82
        assert platform["calculations_performed"] == 1
        assert platform["last_calculation_run"] == NOW

        monthly = store.peek(collections.PLATFORM_STATS, "monthly_2026-03")["interest"]
        assert monthly == {"calculations": 1, "monthly_accrued": 82}
        project = store.peek(collections.PROJECTS, "proj-1")
        assert project["escrow"]["total_interest_accrued"] == 82

        assert result.integrity.passed is True
        assert result.integrity.calculated_total == 82
        summary = store.peek(collections.INTEREST_BATCH_RESULTS, result.batch_id)
        assert summary["status"] == "ok"
        assert summary["completed_at"] == NOW
        assert metric_value(metrics, "interest_accrued_cents_total") == 82

    @pytest.mark.asyncio
    async def test_second_run_same_day_is_noop(
        self, store: InMemoryDocumentStore, service: InterestAccrualService
    ) -> None:
        store.seed(collections.ESCROW_RECORDS, "e1", escrow_doc("e1"))

        await service.accrue_interest(NOW)
        second = await service.accrue_interest(NOW + timedelta(hours=6))

        assert second.processed == 0
        assert second.skipped == 1
        assert store.peek(collections.ESCROW_RECORDS, "e1")["accrued_interest"] == 82
        assert len(store.documents(collections.INTEREST_CALCULATIONS)) == 1

    @pytest.mark.asyncio
    async def test_continues_from_last_calculation(
        self, store: InMemoryDocumentStore, service: InterestAccrualService
    ) -> None:
        store.seed(
            collections.ESCROW_RECORDS,
            "e1",
            escrow_doc(
                "e1",
                created_at=NOW - timedelta(days=100),
                last_interest_calculation=NOW - timedelta(days=3),
                accrued_interest=20,
            ),
        )
        store.seed(
            collections.PLATFORM_STATS,
            collections.GLOBAL_STATS_ID,
            {"interest": {"total_accrued": 20}},
        )

        result = await service.accrue_interest(NOW)

        assert result.total_interest_accrued == 27
        escrow = store.peek(collections.ESCROW_RECORDS, "e1")
        assert escrow["accrued_interest"] == 47
        assert escrow["total_with_interest"] == 100_047
        assert result.integrity.recorded_total == 47
        assert result.integrity.passed is True

    @pytest.mark.asyncio
    async def test_zero_interest_only_advances_timestamp(
        self, store: InMemoryDocumentStore, service: InterestAccrualService
    ) -> None:
        store.seed(
            collections.ESCROW_RECORDS,
            "e1",
            escrow_doc("e1", amount=1_000, last_interest_calculation=NOW - timedelta(days=1)),
        )

        result = await service.accrue_interest(NOW)

        assert result.processed == 1
        assert result.total_interest_accrued == 0
        escrow = store.peek(collections.ESCROW_RECORDS, "e1")
        assert escrow["accrued_interest"] == 0
        assert escrow["last_interest_calculation"] == NOW
        assert store.documents(collections.INTEREST_CALCULATIONS) == {}

    @pytest.mark.asyncio
    async def test_only_held_positive_records_are_scanned(
        self, store: InMemoryDocumentStore, service: InterestAccrualService
    ) -> None:
        store.seed(collections.ESCROW_RECORDS, "held", escrow_doc("held"))
        store.seed(collections.ESCROW_RECORDS, "released", escrow_doc("released", status="released"))
        store.seed(collections.ESCROW_RECORDS, "empty", escrow_doc("empty", amount=0))

        result = await service.accrue_interest(NOW)

        assert result.total_records == 1
        assert store.peek(collections.ESCROW_RECORDS, "released")["accrued_interest"] == 0

    @pytest.mark.asyncio
    async def test_young_record_skipped(
        self, store: InMemoryDocumentStore, service: InterestAccrualService
    ) -> None:
        store.seed(
            collections.ESCROW_RECORDS, "e1", escrow_doc("e1", created_at=NOW - timedelta(hours=12))
        )

        result = await service.accrue_interest(NOW)

        assert result.skipped == 1
        assert result.processed == 0

    @pytest.mark.asyncio
    async def test_unreadable_record_counted_as_error(
        self, store: InMemoryDocumentStore, service: InterestAccrualService
    ) -> None:
        broken = escrow_doc("broken")
        broken["created_at"] = None
        store.seed(collections.ESCROW_RECORDS, "broken", broken)
        store.seed(collections.ESCROW_RECORDS, "e1", escrow_doc("e1"))

        result = await service.accrue_interest(NOW)

        assert result.errors == 1
        assert result.failed_escrow_ids == ["broken"]
        assert result.processed == 1
        assert result.status == OperationStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_failed_record_does_not_touch_totals(
        self, store: InMemoryDocumentStore, service: InterestAccrualService
    ) -> None:
        store.seed(collections.ESCROW_RECORDS, "e1", escrow_doc("e1"))
        store.seed(collections.ESCROW_RECORDS, "e2", escrow_doc("e2"))
        store.fail_next("commit", collection=collections.ESCROW_RECORDS)

        result = await service.accrue_interest(NOW)

        assert result.errors == 1
        assert result.processed == 1
        assert len(result.failed_escrow_ids) == 1
        platform = store.peek(collections.PLATFORM_STATS, collections.GLOBAL_STATS_ID)
        assert platform["interest"]["total_accrued"] == 82
        assert result.integrity.passed is True

    @pytest.mark.asyncio
    async def test_record_calculated_concurrently_is_skipped(
        self, store: InMemoryDocumentStore, service: InterestAccrualService
    ) -> None:
        store.seed(collections.ESCROW_RECORDS, "e1", escrow_doc("e1"))

        async def concurrent_run(s: InMemoryDocumentStore) -> None:
            await s.update(collections.ESCROW_RECORDS, "e1", {"last_interest_calculation": NOW})

        store.on_next_transaction(concurrent_run)

        result = await service.accrue_interest(NOW)

        assert result.skipped == 1
        assert result.processed == 0
        assert store.peek(collections.ESCROW_RECORDS, "e1")["accrued_interest"] == 0

    @pytest.mark.asyncio
    async def test_notifies_each_contributor_once(
        self,
        store: InMemoryDocumentStore,
        notifier: NotificationSenderStub,
        service: InterestAccrualService,
    ) -> None:
        store.seed(collections.ESCROW_RECORDS, "e1", escrow_doc("e1"))
        store.seed(collections.ESCROW_RECORDS, "e2", escrow_doc("e2"))
        store.seed(
            collections.ESCROW_RECORDS,
            "e3",
            escrow_doc("e3", amount=1_000, contributor_id="contributor-2"),
        )

        await service.accrue_interest(NOW)

        [sent] = notifier.of_kind("interest_earned")
        assert sent.recipient == "contributor-1"
        assert sent.data["total_interest_earned"] == 164
        assert sent.data["project_count"] == 1
        assert len(sent.data["calculations"]) == 2

    @pytest.mark.asyncio
    async def test_failed_notification_does_not_fail_run(
        self,
        store: InMemoryDocumentStore,
        notifier: NotificationSenderStub,
        service: InterestAccrualService,
    ) -> None:
        store.seed(collections.ESCROW_RECORDS, "e1", escrow_doc("e1", amount=1_000_000))
        notifier.fail_all = True

        result = await service.accrue_interest(NOW)

        assert result.status == OperationStatus.OK
        assert result.total_interest_accrued == 822

    @pytest.mark.asyncio
    async def test_records_in_flight_bounded_by_batch_size(
        self, notifier: NotificationSenderStub, metrics: EngineMetrics
    ) -> None:
        store = _GatedProjectStore()
        service = InterestAccrualService(
            store, notifier, InterestConfig(processing_batch_size=2), metrics
        )
        for n in range(1, 6):
            store.seed(collections.PROJECTS, f"proj-{n}", project_doc(project_id=f"proj-{n}"))
            store.seed(
                collections.ESCROW_RECORDS,
                f"e{n}",
                escrow_doc(f"e{n}", project_id=f"proj-{n}", contributor_id=f"contributor-{n}"),
            )

        task = asyncio.create_task(service.accrue_interest(NOW))
        for _ in range(20):
            await asyncio.sleep(0)
        assert store.in_flight == 2
        store.release.set()
        result = await task

        assert result.processed == 5
        assert store.peak == 2
        assert store.in_flight == 0


class _GatedProjectStore(InMemoryDocumentStore):
    """Holds project lookups until released and tracks how many overlap."""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()
        self.in_flight = 0
        self.peak = 0

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        if collection != collections.PROJECTS:
            return await super().get(collection, doc_id)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await self.release.wait()
            return await super().get(collection, doc_id)
        finally:
            self.in_flight -= 1


class TestCheckIntegrity:
    @pytest.mark.asyncio
    async def test_discrepancy_opens_ticket(
        self,
        store: InMemoryDocumentStore,
        metrics: EngineMetrics,
        service: InterestAccrualService,
    ) -> None:
        store.seed(collections.ESCROW_RECORDS, "e1", escrow_doc("e1", accrued_interest=100))
        store.seed(collections.ESCROW_RECORDS, "e2", escrow_doc("e2", accrued_interest=150))
        store.seed(
            collections.PLATFORM_STATS,
            collections.GLOBAL_STATS_ID,
            {"interest": {"total_accrued": 500}},
        )

        report = await service.check_integrity(NOW)

        assert report.passed is False
        assert report.recorded_total == 500
        assert report.calculated_total == 250
        assert report.discrepancy == 250
        assert report.records_checked == 2

        ticket = store.peek(collections.SUPPORT_TICKETS, report.ticket_id)
        assert ticket["type"] == "financial_discrepancy"
        assert ticket["priority"] == "critical"
        assert ticket["status"] == "open"
        assert ticket["auto_generated"] is True
        assert ticket["data"]["discrepancy"] == 250
        assert metric_value(metrics, "interest_integrity_discrepancies_total") == 1

    @pytest.mark.asyncio
    async def test_within_tolerance_passes(
        self, store: InMemoryDocumentStore, service: InterestAccrualService
    ) -> None:
        store.seed(collections.ESCROW_RECORDS, "e1", escrow_doc("e1", accrued_interest=250))
        store.seed(
            collections.ESCROW_RECORDS,
            "gone",
            escrow_doc("gone", accrued_interest=400, status="released"),
        )
        store.seed(
            collections.PLATFORM_STATS,
            collections.GLOBAL_STATS_ID,
            {"interest": {"total_accrued": 350}},
        )

        report = await service.check_integrity(NOW)

        assert report.passed is True
        assert report.calculated_total == 250
        assert report.ticket_id is None
        assert store.documents(collections.SUPPORT_TICKETS) == {}

    @pytest.mark.asyncio
    async def test_empty_ledger_passes(self, service: InterestAccrualService) -> None:
        report = await service.check_integrity(NOW)

        assert report.passed is True
        assert report.records_checked == 0
