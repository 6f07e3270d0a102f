"""Audit report submission route.

The assigned auditor submits a report for the milestone under audit.
Validation, the milestone transition, escrow settlement and
compensation all run synchronously inside this request.

Developer Golden Rules:
1. FAIL LOUD - Quality gate failures return 422 naming the violated rule
2. RETRYABLE CONFLICTS - A stale project version returns 409 with retryable=true
3. PARTIAL IS SUCCESS - Transfer or compensation failures never fail the request
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, Request

from audit_settlement.api.dependencies.engine import get_report_submission_service
from audit_settlement.api.errors import to_http_exception
from audit_settlement.api.models.common import ProblemDetail
from audit_settlement.api.models.report import SubmitReportRequest, SubmitReportResponse
from audit_settlement.application.services import ReportSubmissionService
from audit_settlement.domain.exceptions import AuditEngineError

router = APIRouter(prefix="/v1/audits", tags=["audits"])


@router.post(
    "/{audit_id}/report",
    response_model=SubmitReportResponse,
    status_code=201,
    responses={
        404: {"model": ProblemDetail, "description": "Audit, project or milestone not found"},
        409: {"model": ProblemDetail, "description": "Project changed concurrently; retry"},
        412: {"model": ProblemDetail, "description": "Audit or milestone in the wrong state"},
        422: {"model": ProblemDetail, "description": "Report failed a quality rule"},
    },
    summary="Submit an audit report",
)
async def submit_report(
    audit_id: str,
    request_data: SubmitReportRequest,
    request: Request,
    x_auditor_id: str = Header(..., alias="X-Auditor-Id"),
    service: ReportSubmissionService = Depends(get_report_submission_service),
) -> SubmitReportResponse:
    """Submit a report for an in-progress audit.

    Args:
        audit_id: Audit being reported on.
        request_data: The report.
        request: FastAPI request for error context.
        x_auditor_id: Submitting auditor.
        service: Injected report submission service.

    Returns:
        SubmitReportResponse with settlement and compensation outcomes.

    Raises:
        HTTPException: RFC 7807 problem for engine errors.
    """
    submitted_at = datetime.now(timezone.utc)
    try:
        result = await service.submit_report(
            x_auditor_id, request_data.to_submission(audit_id), now=submitted_at
        )
    except AuditEngineError as e:
        raise to_http_exception(e, request) from None
    return SubmitReportResponse.from_result(result, submitted_at)
