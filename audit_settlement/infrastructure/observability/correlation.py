"""Correlation ID management across async boundaries.

Each HTTP request and each scheduled run gets a correlation id, set in a
context variable and added to every log entry by
``correlation_id_processor``.

Usage:
    # In middleware (request start)
    correlation_id = request.headers.get("X-Correlation-ID") or generate_correlation_id()
    set_correlation_id(correlation_id)

    # In structlog configuration
    processors = [..., correlation_id_processor, ...]
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4

# Empty string means "not set"
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def generate_correlation_id() -> str:
    """Generate a new correlation ID (UUID4)."""
    return str(uuid4())


def get_correlation_id() -> str:
    """Get the current correlation ID, or empty string if not set."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID in the current context.

    Args:
        correlation_id: The correlation ID to set.
    """
    _correlation_id.set(correlation_id)


def correlation_id_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor adding correlation_id to every log entry.

    Args:
        logger: The logger instance (unused, required by structlog).
        method_name: The logging method name (unused, required by structlog).
        event_dict: The event dictionary to modify.

    Returns:
        The event dictionary with correlation_id added when one is set.
    """
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict
