"""HR Core — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hrcore import __version__
from hrcore.approvals.router import router as approvals_router
from hrcore.auth.router import router as permissions_router
from hrcore.common.exceptions import register_exception_handlers
from hrcore.common.log_config import configure_logging
from hrcore.common.rate_limit import limiter
from hrcore.config import settings
from hrcore.database import Database
from hrcore.leave.router import router as leave_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the database on startup and dispose it on shutdown."""
    database = Database.from_settings(settings)
    app.state.database = database
    logger.info("HR Core started (environment=%s)", settings.ENVIRONMENT)
    try:
        yield
    finally:
        await database.dispose()
        logger.info("HR Core stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="HR Core",
        description="Leave entitlements, leave requests and approval routing",
        version=__version__,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])
    app.include_router(approvals_router, prefix="/api/v1/departments", tags=["approvals"])
    app.include_router(permissions_router, prefix="/api/v1/permissions", tags=["permissions"])

    return app


app = create_app()
