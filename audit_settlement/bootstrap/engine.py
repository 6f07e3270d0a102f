"""Bootstrap wiring for the audit settlement engine.

Builds every service from an ``EngineConfig`` and the three external
ports. ``build_engine_from_environment`` is the production entry point:
it loads ``.env``, configures structlog and selects HTTP adapters when
their endpoints are configured, falling back to the in-memory stubs for
development.

Environment Variables:
    ENVIRONMENT: 'production' for JSON logs (default: development)
    PAYMENT_API_URL / PAYMENT_API_KEY: Enable the HTTP payment adapter
    PAYMENT_API_TIMEOUT: Payment request timeout in seconds (default: 10)
    NOTIFICATION_WEBHOOK_URL: Enable the webhook notification sender
    NOTIFICATION_WEBHOOK_SECRET: HMAC secret for webhook payloads
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv
from structlog import get_logger

from audit_settlement.application.ports.document_store import DocumentStoreProtocol
from audit_settlement.application.ports.notification import NotificationSenderProtocol
from audit_settlement.application.ports.payment_transfer import PaymentTransferProtocol
from audit_settlement.application.services import (
    AssignmentLifecycleService,
    AuditorMatchingService,
    CompensationService,
    InterestAccrualService,
    MilestoneSettlementService,
    ReportQualityGate,
    ReportSubmissionService,
)
from audit_settlement.config import EngineConfig
from audit_settlement.infrastructure.adapters import (
    HttpPaymentTransferAdapter,
    WebhookNotificationSender,
)
from audit_settlement.infrastructure.monitoring.metrics import (
    EngineMetrics,
    get_engine_metrics,
)
from audit_settlement.infrastructure.observability import configure_structlog
from audit_settlement.infrastructure.stubs import (
    InMemoryDocumentStore,
    NotificationSenderStub,
    PaymentTransferStub,
)
from audit_settlement.workers import ScheduledJobRunner

logger = get_logger(__name__)


@dataclass(frozen=True)
class Engine:
    """Every engine service, wired to one set of ports."""

    config: EngineConfig
    store: DocumentStoreProtocol
    payments: PaymentTransferProtocol
    notifier: NotificationSenderProtocol
    metrics: EngineMetrics | None
    matcher: AuditorMatchingService
    assignments: AssignmentLifecycleService
    quality_gate: ReportQualityGate
    settlement: MilestoneSettlementService
    compensation: CompensationService
    interest: InterestAccrualService
    submissions: ReportSubmissionService
    scheduler: ScheduledJobRunner


def build_engine(
    config: EngineConfig,
    store: DocumentStoreProtocol,
    payments: PaymentTransferProtocol,
    notifier: NotificationSenderProtocol,
    metrics: EngineMetrics | None = None,
) -> Engine:
    """Wire the engine services.

    Args:
        config: Engine configuration.
        store: Document store.
        payments: Payment transfer collaborator.
        notifier: Notification collaborator.
        metrics: Optional Prometheus metrics.

    Returns:
        The wired Engine.
    """
    matcher = AuditorMatchingService(store, config.matching)
    assignments = AssignmentLifecycleService(
        store, matcher, notifier, config.assignment, metrics
    )
    quality_gate = ReportQualityGate(config.quality_gate)
    settlement = MilestoneSettlementService(store, payments, config.settlement, metrics)
    compensation = CompensationService(store, config.compensation)
    interest = InterestAccrualService(store, notifier, config.interest, metrics)
    submissions = ReportSubmissionService(
        store, quality_gate, settlement, compensation, notifier, metrics
    )
    return Engine(
        config=config,
        store=store,
        payments=payments,
        notifier=notifier,
        metrics=metrics,
        matcher=matcher,
        assignments=assignments,
        quality_gate=quality_gate,
        settlement=settlement,
        compensation=compensation,
        interest=interest,
        submissions=submissions,
        scheduler=ScheduledJobRunner(store, assignments, interest, metrics),
    )


def _payment_adapter() -> PaymentTransferProtocol:
    base_url = os.environ.get("PAYMENT_API_URL")
    api_key = os.environ.get("PAYMENT_API_KEY")
    if base_url and api_key:
        timeout = float(os.environ.get("PAYMENT_API_TIMEOUT", "10"))
        return HttpPaymentTransferAdapter(base_url, api_key, timeout=timeout)
    logger.warning("payment_adapter_stubbed", reason="PAYMENT_API_URL or PAYMENT_API_KEY unset")
    return PaymentTransferStub()


def _notification_sender() -> NotificationSenderProtocol:
    webhook_url = os.environ.get("NOTIFICATION_WEBHOOK_URL")
    if webhook_url:
        return WebhookNotificationSender(
            webhook_url, secret=os.environ.get("NOTIFICATION_WEBHOOK_SECRET")
        )
    logger.warning("notification_sender_stubbed", reason="NOTIFICATION_WEBHOOK_URL unset")
    return NotificationSenderStub()


def build_engine_from_environment() -> Engine:
    """Build the engine from ``.env`` and the process environment."""
    load_dotenv()
    configure_structlog(os.environ.get("ENVIRONMENT", "development"))
    config = EngineConfig.from_environment()
    engine = build_engine(
        config,
        store=InMemoryDocumentStore(),
        payments=_payment_adapter(),
        notifier=_notification_sender(),
        metrics=get_engine_metrics(),
    )
    logger.info(
        "audit_engine_bootstrapped",
        payments=type(engine.payments).__name__,
        notifier=type(engine.notifier).__name__,
    )
    return engine


_engine: Engine | None = None


def get_engine() -> Engine:
    """Get the process-wide engine, building it on first use."""
    global _engine
    if _engine is None:
        _engine = build_engine_from_environment()
    return _engine


def set_engine(engine: Engine) -> None:
    """Set a custom engine (testing/override)."""
    global _engine
    _engine = engine


def reset_engine() -> None:
    """Reset the engine singleton (testing cleanup)."""
    global _engine
    _engine = None
