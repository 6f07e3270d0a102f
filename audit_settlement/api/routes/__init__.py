"""API routers."""

from audit_settlement.api.routes.assignments import router as assignments_router
from audit_settlement.api.routes.health import router as health_router
from audit_settlement.api.routes.metrics import router as metrics_router
from audit_settlement.api.routes.reports import router as reports_router
from audit_settlement.api.routes.scheduled import router as scheduled_router

__all__ = [
    "assignments_router",
    "health_router",
    "metrics_router",
    "reports_router",
    "scheduled_router",
]
