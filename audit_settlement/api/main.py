"""FastAPI application entry point for the audit settlement engine."""

from fastapi import FastAPI

from audit_settlement.api.middleware import LoggingMiddleware
from audit_settlement.api.routes import (
    assignments_router,
    health_router,
    metrics_router,
    reports_router,
    scheduled_router,
)


def create_app() -> FastAPI:
    """Build the application; services resolve lazily via the engine singleton."""
    application = FastAPI(
        title="Audit Settlement Engine",
        description="Audit assignment, report settlement and escrow interest",
        version="0.1.0",
    )
    application.add_middleware(LoggingMiddleware)
    application.include_router(health_router)
    application.include_router(metrics_router)
    application.include_router(reports_router)
    application.include_router(assignments_router)
    application.include_router(scheduled_router)
    return application


app = create_app()
