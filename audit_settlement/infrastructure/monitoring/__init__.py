"""Monitoring: Prometheus metrics for the engine."""

from audit_settlement.infrastructure.monitoring.metrics import (
    METRICS_CONTENT_TYPE,
    EngineMetrics,
    generate_metrics,
    get_engine_metrics,
    reset_engine_metrics,
)

__all__ = [
    "METRICS_CONTENT_TYPE",
    "EngineMetrics",
    "generate_metrics",
    "get_engine_metrics",
    "reset_engine_metrics",
]
