"""
Pytest configuration and shared fixtures for audit settlement tests.

Testing Standards:
- Async tests run under pytest-asyncio (auto mode enabled in pyproject.toml)
- Services are exercised against the in-memory stubs, not mocks, unless a
  test is about how a collaborator is called
- Unit tests go in tests/unit/, multi-service scenarios in tests/integration/
"""

from datetime import datetime

import pytest
from prometheus_client import CollectorRegistry

from audit_settlement.bootstrap import Engine, build_engine
from audit_settlement.config import TEST_ENGINE_CONFIG, EngineConfig
from audit_settlement.infrastructure.monitoring import EngineMetrics
from audit_settlement.infrastructure.stubs import (
    InMemoryDocumentStore,
    NotificationSenderStub,
    PaymentTransferStub,
)
from tests.helpers import NOW


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for deterministic runs."""
    return NOW


@pytest.fixture
def config() -> EngineConfig:
    return TEST_ENGINE_CONFIG


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def payments() -> PaymentTransferStub:
    return PaymentTransferStub()


@pytest.fixture
def notifier() -> NotificationSenderStub:
    return NotificationSenderStub()


@pytest.fixture
def metrics() -> EngineMetrics:
    """Metrics on a private registry so counters start at zero."""
    return EngineMetrics(registry=CollectorRegistry())


@pytest.fixture
def engine(
    config: EngineConfig,
    store: InMemoryDocumentStore,
    payments: PaymentTransferStub,
    notifier: NotificationSenderStub,
    metrics: EngineMetrics,
) -> Engine:
    return build_engine(config, store, payments, notifier, metrics)
