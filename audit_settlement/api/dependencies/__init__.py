"""FastAPI dependencies."""

from audit_settlement.api.dependencies.engine import (
    get_assignment_service,
    get_report_submission_service,
    get_scheduled_job_runner,
)

__all__ = [
    "get_assignment_service",
    "get_report_submission_service",
    "get_scheduled_job_runner",
]
