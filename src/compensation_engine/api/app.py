"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from compensation_engine import __version__
from compensation_engine.api.routes import (
    compensation_router,
    health_router,
    overtime_router,
    payroll_router,
    salary_router,
)
from compensation_engine.audit import AuditDispatcher
from compensation_engine.config import Settings, configure_logging, get_settings
from compensation_engine.database import Database
from compensation_engine.exceptions import (
    CapExceededError,
    CompensationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[CompensationError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    CapExceededError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _status_for(exc: CompensationError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return status.HTTP_400_BAD_REQUEST


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    When a database is passed in, the caller owns it: it is wired into the
    app immediately and never disposed here.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        # Startup
        configure_logging(settings)
        owned = None
        if getattr(app.state, "database", None) is None:
            owned = Database.from_settings(settings)
            app.state.database = owned
            app.state.audit_dispatcher = AuditDispatcher(
                owned.session_factory, enabled=settings.audit_enabled
            )
            logger.info("Database engine created")
        yield
        # Shutdown
        if owned is not None:
            await owned.dispose()
            logger.info("Database engine disposed")

    app = FastAPI(
        title="Compensation Engine API",
        description="Payroll aggregation and compensation management",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.database = database
    if database is not None:
        app.state.audit_dispatcher = AuditDispatcher(
            database.session_factory, enabled=settings.audit_enabled
        )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(CompensationError)
    async def compensation_exception_handler(
        request: Request, exc: CompensationError
    ) -> JSONResponse:
        """Map engine errors to HTTP responses."""
        if isinstance(exc, PersistenceError) and exc.audit_entries:
            dispatcher: AuditDispatcher = request.app.state.audit_dispatcher
            await dispatcher.dispatch(exc.audit_entries)
        return JSONResponse(
            status_code=_status_for(exc),
            content={"detail": str(exc), "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(salary_router, prefix="/api/v1")
    app.include_router(overtime_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")
    app.include_router(compensation_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
