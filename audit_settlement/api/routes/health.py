"""Health check endpoint."""

from fastapi import APIRouter

from audit_settlement.api.models.health import HealthResponse

router = APIRouter(prefix="/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return health status.

    Returns:
        Health status with 200 OK.
    """
    return HealthResponse(status="healthy")
