"""Unit tests for AuditorMatchingService eligibility and scoring."""

from typing import Any

import pytest

from audit_settlement.application import collections
from audit_settlement.application.services import AuditorMatchingService
from audit_settlement.config import MatchingConfig
from audit_settlement.domain.models import AuditComplexity, AuditorProfile
from audit_settlement.infrastructure.stubs import InMemoryDocumentStore
from tests.helpers import audit_request, auditor_doc


def _profile(**overrides: Any) -> AuditorProfile:
    return AuditorProfile.from_dict(auditor_doc(**overrides))


@pytest.fixture
def matcher(store: InMemoryDocumentStore) -> AuditorMatchingService:
    return AuditorMatchingService(store, MatchingConfig())


class TestEligibility:
    def test_default_auditor_is_eligible(self, matcher: AuditorMatchingService) -> None:
        assert matcher.is_eligible(_profile(), audit_request())

    @pytest.mark.parametrize(
        "overrides",
        [
            {"status": "suspended"},
            {"identity_verified": False},
            {"auditing_enabled": False},
            {"qualifications": ["impact_assessment"]},
            {"workload": {"current_audits": 3}},
            {"max_concurrent_audits": 1, "workload": {"current_audits": 1}},
            {"min_audit_fee": 60_000},
            {"max_audit_fee": 40_000},
            {"preferred_complexity": "complex"},
        ],
        ids=[
            "suspended",
            "unverified",
            "auditing_disabled",
            "missing_qualification",
            "at_default_capacity",
            "at_own_capacity",
            "fee_below_minimum",
            "fee_above_maximum",
            "complexity_mismatch",
        ],
    )
    def test_ineligible(self, matcher: AuditorMatchingService, overrides: dict[str, Any]) -> None:
        assert not matcher.is_eligible(_profile(**overrides), audit_request())

    @pytest.mark.parametrize(
        "overrides",
        [
            {"min_audit_fee": 50_000, "max_audit_fee": 50_000},
            {"preferred_complexity": None},
            {"preferred_complexity": "standard"},
            {"qualifications": ["financial_audit", "impact_assessment"]},
            {"workload": {"current_audits": 2}},
        ],
        ids=["fee_bounds_inclusive", "no_preference", "same_complexity", "extra_qualifications", "below_capacity"],
    )
    def test_eligible(self, matcher: AuditorMatchingService, overrides: dict[str, Any]) -> None:
        assert matcher.is_eligible(_profile(**overrides), audit_request())

    def test_needs_every_required_qualification(self, matcher: AuditorMatchingService) -> None:
        request = audit_request(required_qualifications=("financial_audit", "impact_assessment"))
        assert not matcher.is_eligible(_profile(), request)


class TestScoring:
    def test_all_components(self, matcher: AuditorMatchingService) -> None:
        auditor = _profile(
            performance={"average_score": 92, "average_completion_days": 6},
            workload={"current_audits": 1},
            category_experience={"environment": 4},
        )
        # specialization 10 + score 20 + speed 15 + capacity round(15 * 2/3) 10 + experience 4
        assert matcher.score(auditor, audit_request()) == 59

    def test_good_but_not_excellent_history(self, matcher: AuditorMatchingService) -> None:
        auditor = _profile(
            specializations=[],
            performance={"average_score": 85, "average_completion_days": 10},
        )
        assert matcher.score(auditor, audit_request()) == 10 + 10 + 15

    def test_no_history_scores_capacity_only(self, matcher: AuditorMatchingService) -> None:
        auditor = _profile(specializations=[])
        assert matcher.score(auditor, audit_request()) == 15

    def test_capacity_points_round_half_up(self, matcher: AuditorMatchingService) -> None:
        auditor = _profile(specializations=[], max_concurrent_audits=2, workload={"current_audits": 1})
        assert matcher.score(auditor, audit_request()) == 8

    def test_experience_capped(self, matcher: AuditorMatchingService) -> None:
        auditor = _profile(specializations=[], category_experience={"environment": 40})
        assert matcher.score(auditor, audit_request()) == 15 + 10

    def test_each_matching_specialization_counts(self, matcher: AuditorMatchingService) -> None:
        auditor = _profile(specializations=["environment", "water", "energy"])
        request = audit_request(preferred_specializations=("environment", "water"))
        assert matcher.score(auditor, request) == 20 + 15


class TestRank:
    def test_best_first_and_ties_keep_input_order(self, matcher: AuditorMatchingService) -> None:
        auditors = [
            _profile(id="a", specializations=[]),
            _profile(id="b"),
            _profile(id="c", specializations=[]),
            _profile(id="d", status="suspended"),
        ]
        ranked = matcher.rank(auditors, audit_request())
        assert [c.auditor.id for c in ranked] == ["b", "a", "c"]
        assert [c.score for c in ranked] == [25, 15, 15]

    def test_top_n(self, matcher: AuditorMatchingService) -> None:
        auditors = [_profile(id=f"auditor-{i}") for i in range(7)]
        assert len(matcher.rank(auditors, audit_request())) == 5


class TestFindQualifiedAuditors:
    @pytest.mark.asyncio
    async def test_reads_store_and_ranks(
        self, store: InMemoryDocumentStore, matcher: AuditorMatchingService
    ) -> None:
        store.seed(collections.AUDITORS, "a", auditor_doc("a", specializations=[]))
        store.seed(collections.AUDITORS, "b", auditor_doc("b"))
        store.seed(collections.AUDITORS, "off", auditor_doc("off", auditing_enabled=False))

        ranked = await matcher.find_qualified_auditors(audit_request())

        assert [c.auditor.id for c in ranked] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_unreadable_profile_skipped(
        self, store: InMemoryDocumentStore, matcher: AuditorMatchingService
    ) -> None:
        store.seed(collections.AUDITORS, "bad", auditor_doc("bad", workload={"current_audits": "many"}))
        store.seed(collections.AUDITORS, "good", auditor_doc("good"))

        ranked = await matcher.find_qualified_auditors(audit_request())

        assert [c.auditor.id for c in ranked] == ["good"]

    @pytest.mark.asyncio
    async def test_nobody_qualifies(
        self, store: InMemoryDocumentStore, matcher: AuditorMatchingService
    ) -> None:
        store.seed(collections.AUDITORS, "a", auditor_doc("a", qualifications=[]))
        request = audit_request(complexity=AuditComplexity.COMPLEX)

        assert await matcher.find_qualified_auditors(request) == []
