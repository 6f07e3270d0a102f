"""Mapping of engine errors to RFC 7807 problem responses.

- Validation (quality gate) -> 422, not retryable
- Conflict (stale project version, aborted transaction) -> 409, retryable
- Not found -> 404
- Invalid state -> 412
"""

from fastapi import HTTPException, Request

from audit_settlement.domain.errors import (
    EntityNotFoundError,
    InvalidStateError,
    ReportValidationError,
    TransactionConflictError,
    VersionConflictError,
)
from audit_settlement.domain.exceptions import AuditEngineError

PROBLEM_PREFIX = "urn:audit-settlement"


def _problem(
    status: int,
    kind: str,
    title: str,
    error: AuditEngineError,
    request: Request,
    **extensions: object,
) -> HTTPException:
    detail = {
        "type": f"{PROBLEM_PREFIX}:{kind}",
        "title": title,
        "status": status,
        "detail": str(error),
        "instance": str(request.url),
        "retryable": error.retryable,
    }
    detail.update(extensions)
    return HTTPException(status_code=status, detail=detail)


def to_http_exception(error: AuditEngineError, request: Request) -> HTTPException:
    """Translate an engine error into an HTTPException.

    Args:
        error: The engine error raised by a service.
        request: Current request (for ``instance``).

    Returns:
        HTTPException with an RFC 7807 detail body. Errors outside the
        known classes map to 500.
    """
    if isinstance(error, ReportValidationError):
        return _problem(
            422,
            "report:validation-failed",
            "Report Validation Failed",
            error,
            request,
            rule=error.rule.value,
            details=error.details,
        )
    if isinstance(error, VersionConflictError):
        return _problem(
            409,
            "project:version-conflict",
            "Project Version Conflict",
            error,
            request,
            project_id=error.project_id,
            expected_version=error.expected_version,
            actual_version=error.actual_version,
        )
    if isinstance(error, TransactionConflictError):
        return _problem(
            409,
            "store:transaction-conflict",
            "Concurrent Modification",
            error,
            request,
        )
    if isinstance(error, EntityNotFoundError):
        return _problem(
            404,
            "entity:not-found",
            f"{error.entity_name} Not Found",
            error,
            request,
            entity_id=error.entity_id,
        )
    if isinstance(error, InvalidStateError):
        return _problem(412, "state:invalid", "Invalid State", error, request)
    return _problem(500, "engine:error", "Engine Error", error, request)
