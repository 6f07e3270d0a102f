"""Prometheus scrape endpoint for engine metrics."""

from fastapi import APIRouter, Response

from audit_settlement.infrastructure.monitoring.metrics import (
    METRICS_CONTENT_TYPE,
    generate_metrics,
)

router = APIRouter(tags=["metrics"])


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    response_class=Response,
    responses={200: {"description": "Metrics in Prometheus format", "content": {"text/plain": {}}}},
)
async def get_metrics() -> Response:
    """Engine metrics in Prometheus exposition format."""
    return Response(content=generate_metrics(), media_type=METRICS_CONTENT_TYPE)
