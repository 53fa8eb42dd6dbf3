"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_batch.api.routes import health_router, line_items_router, runs_router, ytd_router
from payroll_batch.config import get_settings
from payroll_batch.database import dispose_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    owns_engine = app.state.session_factory is None
    if owns_engine:
        _, app.state.session_factory = init_db()
    yield
    # Shutdown
    if owns_engine:
        await dispose_db()


def create_app(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A session factory may be supplied (tests do); otherwise the global
    engine is created at startup from DATABASE_URL.
    """
    settings = get_settings()
    app = FastAPI(
        title="Payroll Batch API",
        description="Timesheet-driven payroll calculation",
        version=settings.engine_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
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
    app.include_router(runs_router, prefix="/api/v1")
    app.include_router(line_items_router, prefix="/api/v1")
    app.include_router(ytd_router, prefix="/api/v1")

    return app
