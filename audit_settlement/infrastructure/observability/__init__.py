"""Observability: structured logging and correlation ids."""

from audit_settlement.infrastructure.observability.correlation import (
    correlation_id_processor,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from audit_settlement.infrastructure.observability.logging import (
    configure_structlog,
)

__all__ = [
    "configure_structlog",
    "correlation_id_processor",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]
