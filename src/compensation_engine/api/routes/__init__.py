"""API routes."""

from compensation_engine.api.routes.compensation import router as compensation_router
from compensation_engine.api.routes.health import router as health_router
from compensation_engine.api.routes.overtime import router as overtime_router
from compensation_engine.api.routes.payroll import router as payroll_router
from compensation_engine.api.routes.salary import router as salary_router

__all__ = [
    "compensation_router",
    "health_router",
    "overtime_router",
    "payroll_router",
    "salary_router",
]
