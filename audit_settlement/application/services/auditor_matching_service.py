"""Auditor matching and scoring service.

Given an audit request, filters candidate auditors and ranks the ones
that remain.

Eligibility (all must hold):
- active, identity-verified, auditing-enabled
- holds every required qualification
- current audits below capacity
- estimated amount inside the auditor's fee range (inclusive)
- preferred complexity unset, "any", or equal to the request's

Scoring:
- +10 per matching preferred specialization
- +20 / +10 for historical average score >= 90 / >= 80
- +15 / +10 for average completion <= 7 / <= 14 days
- +round(15 x (1 - utilization)) for spare capacity
- +min(category experience, 10)

Ties keep the candidate order returned by the store (stable sort). An
empty result is not an error; the caller escalates.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from structlog import get_logger

from audit_settlement.application import collections
from audit_settlement.application.ports.document_store import (
    DocumentStoreProtocol,
    FieldFilter,
    FilterOp,
)
from audit_settlement.config import MatchingConfig
from audit_settlement.domain.models import (
    ANY_COMPLEXITY,
    AuditorProfile,
    AuditorStatus,
    AuditRequest,
)
from audit_settlement.domain.primitives import round_half_up

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScoredAuditor:
    """An eligible auditor with its match score."""

    auditor: AuditorProfile
    score: int


class AuditorMatchingService:
    """Finds and ranks qualified auditors for audit requests."""

    def __init__(self, store: DocumentStoreProtocol, config: MatchingConfig) -> None:
        """Initialize the matching service.

        Args:
            store: Document store holding auditor profiles.
            config: Matching thresholds and weights.
        """
        self._store = store
        self._config = config

    def is_eligible(self, auditor: AuditorProfile, request: AuditRequest) -> bool:
        """Check every eligibility rule for one auditor."""
        if auditor.status != AuditorStatus.ACTIVE:
            return False
        if not (auditor.identity_verified and auditor.auditing_enabled):
            return False
        if not set(request.required_qualifications).issubset(auditor.qualifications):
            return False
        if auditor.workload.current_audits >= auditor.capacity(
            self._config.default_max_concurrent_audits
        ):
            return False
        if request.estimated_amount < auditor.min_audit_fee:
            return False
        if auditor.max_audit_fee and request.estimated_amount > auditor.max_audit_fee:
            return False
        preferred = auditor.preferred_complexity
        if preferred and preferred != ANY_COMPLEXITY and preferred != request.complexity.value:
            return False
        return True

    def score(self, auditor: AuditorProfile, request: AuditRequest) -> int:
        """Relevance score of an eligible auditor for a request."""
        cfg = self._config
        score = 0

        matching = [
            spec for spec in request.preferred_specializations if spec in auditor.specializations
        ]
        score += len(matching) * cfg.specialization_points

        average_score = auditor.performance.average_score
        if average_score is not None:
            if average_score >= cfg.excellent_score:
                score += cfg.excellent_score_points
            elif average_score >= cfg.good_score:
                score += cfg.good_score_points

        completion_days = auditor.performance.average_completion_days
        if completion_days is not None:
            if completion_days <= cfg.fast_completion_days:
                score += cfg.fast_completion_points
            elif completion_days <= cfg.timely_completion_days:
                score += cfg.timely_completion_points

        capacity = auditor.capacity(cfg.default_max_concurrent_audits)
        utilization = Decimal(auditor.workload.current_audits) / Decimal(capacity)
        score += round_half_up(Decimal(cfg.capacity_points) * (1 - utilization))

        experience = auditor.category_experience.get(request.category, 0)
        score += min(experience, cfg.max_experience_points)

        return score

    def rank(
        self, auditors: Iterable[AuditorProfile], request: AuditRequest
    ) -> list[ScoredAuditor]:
        """Filter, score and return the top-N auditors, best first."""
        scored = [
            ScoredAuditor(auditor=auditor, score=self.score(auditor, request))
            for auditor in auditors
            if self.is_eligible(auditor, request)
        ]
        scored.sort(key=lambda candidate: candidate.score, reverse=True)
        return scored[: self._config.max_auditors_per_request]

    async def find_qualified_auditors(self, request: AuditRequest) -> list[ScoredAuditor]:
        """Load candidate auditors and rank them for a request.

        Args:
            request: The audit request to match.

        Returns:
            Up to ``max_auditors_per_request`` auditors, best first. Empty
            when nobody qualifies.
        """
        log = logger.bind(audit_request_id=request.id)

        documents = await self._store.query(
            collections.AUDITORS,
            filters=[
                FieldFilter("status", FilterOp.EQ, AuditorStatus.ACTIVE.value),
                FieldFilter("identity_verified", FilterOp.EQ, True),
                FieldFilter("auditing_enabled", FilterOp.EQ, True),
            ],
            limit=self._config.candidate_pool_size,
        )

        candidates: list[AuditorProfile] = []
        for document in documents:
            try:
                candidates.append(AuditorProfile.from_dict(document))
            except (KeyError, TypeError, ValueError) as e:
                log.warning(
                    "auditor_profile_unreadable",
                    auditor_id=document.get("id"),
                    error=str(e),
                )

        ranked = self.rank(candidates, request)
        log.info(
            "qualified_auditors_found",
            candidates=len(candidates),
            qualified=len(ranked),
            top_score=ranked[0].score if ranked else None,
        )
        return ranked
