"""API routes."""

from payroll_batch.api.routes.payroll_runs import line_items_router, runs_router, ytd_router
from payroll_batch.api.routes.health import router as health_router

__all__ = ["runs_router", "line_items_router", "ytd_router", "health_router"]
