"""API request and response models."""

from audit_settlement.api.models.assignment import (
    AcceptAssignmentRequest,
    AcceptAssignmentResponse,
)
from audit_settlement.api.models.common import ProblemDetail
from audit_settlement.api.models.health import HealthResponse
from audit_settlement.api.models.report import SubmitReportRequest, SubmitReportResponse
from audit_settlement.api.models.scheduled import (
    InterestRunResponse,
    QueueRunResponse,
    ScheduledRunRequest,
)

__all__ = [
    "AcceptAssignmentRequest",
    "AcceptAssignmentResponse",
    "HealthResponse",
    "InterestRunResponse",
    "ProblemDetail",
    "QueueRunResponse",
    "ScheduledRunRequest",
    "SubmitReportRequest",
    "SubmitReportResponse",
]
