"""Assignment acceptance route."""

from fastapi import APIRouter, Depends, Request

from audit_settlement.api.dependencies.engine import get_assignment_service
from audit_settlement.api.errors import to_http_exception
from audit_settlement.api.models.assignment import (
    AcceptAssignmentRequest,
    AcceptAssignmentResponse,
)
from audit_settlement.api.models.common import ProblemDetail
from audit_settlement.application.services import AssignmentLifecycleService
from audit_settlement.domain.exceptions import AuditEngineError

router = APIRouter(prefix="/v1/assignments", tags=["assignments"])


@router.post(
    "/{assignment_id}/accept",
    response_model=AcceptAssignmentResponse,
    responses={
        404: {"model": ProblemDetail, "description": "Assignment or request not found"},
        409: {"model": ProblemDetail, "description": "Concurrent modification; retry"},
        412: {"model": ProblemDetail, "description": "Not the assignee, expired or not pending"},
    },
    summary="Accept an audit assignment",
)
async def accept_assignment(
    assignment_id: str,
    request_data: AcceptAssignmentRequest,
    request: Request,
    service: AssignmentLifecycleService = Depends(get_assignment_service),
) -> AcceptAssignmentResponse:
    """Accept a pending assignment and open its audit.

    Raises:
        HTTPException: RFC 7807 problem for engine errors.
    """
    try:
        audit = await service.accept_assignment(assignment_id, request_data.auditor_id)
    except AuditEngineError as e:
        raise to_http_exception(e, request) from None
    return AcceptAssignmentResponse.from_audit(assignment_id, audit)
