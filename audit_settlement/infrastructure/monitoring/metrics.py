"""Prometheus metrics for engine activity.

Counters cover the outcomes operators alert on: assignments, escalations
by reason, expirations, transfers by outcome, interest accrued and
integrity discrepancies. Services take an optional ``EngineMetrics``;
tests build one on a private registry.
"""

import os
import threading

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# Content type for Prometheus metrics endpoint
METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

_collector_lock = threading.Lock()

# Run duration buckets (100ms to 10min)
RUN_DURATION_BUCKETS = (0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 180.0, 600.0)


class EngineMetrics:
    """Collects engine Prometheus metrics.

    Attributes:
        assignments_total: Assignments created, by complexity.
        escalations_total: Requests escalated, by reason.
        assignments_expired_total: Assignments expired by the sweep.
        reminders_sent_total: Acceptance reminders delivered.
        transfers_total: Settlement transfers, by outcome.
        funds_released_cents_total: Minor units released to projects.
        reports_submitted_total: Accepted reports, by decision.
        reports_rejected_total: Reports rejected by the quality gate, by rule.
        interest_accrued_cents_total: Interest credited to escrow records.
        integrity_discrepancies_total: Integrity passes over tolerance.
        scheduled_run_duration_seconds: Scheduled run duration, by job.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics.

        Args:
            registry: Optional custom registry for testing isolation.
        """
        self._registry = registry or CollectorRegistry()
        self._environment = os.environ.get("ENVIRONMENT", "development")
        labels = ["environment"]

        self.assignments_total = Counter(
            name="audit_assignments_total",
            documentation="Audit assignments created",
            labelnames=labels + ["complexity"],
            registry=self._registry,
        )
        self.escalations_total = Counter(
            name="audit_escalations_total",
            documentation="Audit requests escalated to operators",
            labelnames=labels + ["reason"],
            registry=self._registry,
        )
        self.assignments_expired_total = Counter(
            name="audit_assignments_expired_total",
            documentation="Audit assignments expired without acceptance",
            labelnames=labels,
            registry=self._registry,
        )
        self.reminders_sent_total = Counter(
            name="audit_acceptance_reminders_total",
            documentation="Acceptance reminders delivered",
            labelnames=labels,
            registry=self._registry,
        )
        self.transfers_total = Counter(
            name="settlement_transfers_total",
            documentation="Escrow release transfers",
            labelnames=labels + ["outcome"],
            registry=self._registry,
        )
        self.funds_released_cents_total = Counter(
            name="settlement_funds_released_cents_total",
            documentation="Escrow released to projects, in minor units",
            labelnames=labels,
            registry=self._registry,
        )
        self.reports_submitted_total = Counter(
            name="audit_reports_submitted_total",
            documentation="Audit reports accepted",
            labelnames=labels + ["decision"],
            registry=self._registry,
        )
        self.reports_rejected_total = Counter(
            name="audit_reports_rejected_total",
            documentation="Audit reports rejected by the quality gate",
            labelnames=labels + ["rule"],
            registry=self._registry,
        )
        self.interest_accrued_cents_total = Counter(
            name="interest_accrued_cents_total",
            documentation="Interest credited to escrow records, in minor units",
            labelnames=labels,
            registry=self._registry,
        )
        self.integrity_discrepancies_total = Counter(
            name="interest_integrity_discrepancies_total",
            documentation="Interest integrity checks over tolerance",
            labelnames=labels,
            registry=self._registry,
        )
        self.scheduled_run_duration_seconds = Histogram(
            name="scheduled_run_duration_seconds",
            documentation="Scheduled run duration in seconds",
            labelnames=labels + ["job"],
            buckets=RUN_DURATION_BUCKETS,
            registry=self._registry,
        )

    def record_assignment(self, complexity: str) -> None:
        self.assignments_total.labels(
            environment=self._environment, complexity=complexity
        ).inc()

    def record_escalation(self, reason: str) -> None:
        self.escalations_total.labels(environment=self._environment, reason=reason).inc()

    def record_expiry(self) -> None:
        self.assignments_expired_total.labels(environment=self._environment).inc()

    def record_reminder(self) -> None:
        self.reminders_sent_total.labels(environment=self._environment).inc()

    def record_transfer(self, outcome: str, amount: int = 0) -> None:
        """Count a transfer attempt; ``amount`` only counts on success."""
        self.transfers_total.labels(environment=self._environment, outcome=outcome).inc()
        if amount > 0:
            self.funds_released_cents_total.labels(environment=self._environment).inc(amount)

    def record_report(self, decision: str) -> None:
        self.reports_submitted_total.labels(
            environment=self._environment, decision=decision
        ).inc()

    def record_report_rejection(self, rule: str) -> None:
        self.reports_rejected_total.labels(environment=self._environment, rule=rule).inc()

    def record_interest(self, amount: int) -> None:
        if amount > 0:
            self.interest_accrued_cents_total.labels(environment=self._environment).inc(amount)

    def record_integrity_discrepancy(self) -> None:
        self.integrity_discrepancies_total.labels(environment=self._environment).inc()

    def observe_run_duration(self, job: str, seconds: float) -> None:
        self.scheduled_run_duration_seconds.labels(
            environment=self._environment, job=job
        ).observe(seconds)

    def get_registry(self) -> CollectorRegistry:
        """Get the Prometheus registry (for the metrics endpoint and tests)."""
        return self._registry


_engine_metrics: EngineMetrics | None = None


def get_engine_metrics() -> EngineMetrics:
    """Get the process-wide EngineMetrics instance."""
    global _engine_metrics
    if _engine_metrics is None:
        with _collector_lock:
            if _engine_metrics is None:
                _engine_metrics = EngineMetrics()
    return _engine_metrics


def generate_metrics() -> bytes:
    """Generate Prometheus exposition output for the process-wide metrics."""
    return generate_latest(get_engine_metrics().get_registry())


def reset_engine_metrics() -> None:
    """Reset the process-wide instance (for testing)."""
    global _engine_metrics
    with _collector_lock:
        _engine_metrics = None
