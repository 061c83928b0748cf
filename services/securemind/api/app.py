"""
FastAPI application factory for the SecureMind API server.

Uses lifespan handler for startup/shutdown with async resource management.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from securemind.config import settings
from securemind.db.session import close_db, init_db
from securemind.errors import SecureMindError
from securemind.logging_config import configure_logging, get_logger
from securemind.redis.client import close_redis, init_redis

from .health import router as health_router
from .routers.auth import router as auth_router
from .routers.callables import router as callables_router
from .routers.gate import router as gate_router
from .routers.notifications import router as notifications_router
from .routers.registration import router as registration_router
from .routers.users import router as users_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info("Starting SecureMind API server", version="0.1.0")

    await init_db()
    logger.info("Database connection initialized")

    await init_redis()
    logger.info("Redis connection initialized")

    yield

    # Shutdown
    logger.info("Shutting down SecureMind API server")
    await close_redis()
    await close_db()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="SecureMind API",
        description="SecureMind training portal - identity, roles and notifications",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next: Any) -> Any:
        """Add request ID to context for logging correlation."""
        request_id = request.headers.get("X-Request-ID")
        if request_id:
            structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)

        if request_id:
            response.headers["X-Request-ID"] = request_id
            structlog.contextvars.unbind_contextvars("request_id")

        return response

    @app.exception_handler(SecureMindError)
    async def domain_error_handler(request: Request, exc: SecureMindError) -> JSONResponse:
        """Render a domain error with its status code."""
        if exc.http_status >= 500:
            logger.error("Request failed", path=str(request.url.path), error=exc.message)
        return JSONResponse(status_code=exc.http_status, content={"detail": exc.message})

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Health endpoints (no prefix)
    app.include_router(health_router)

    # API v1 routers
    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(users_router, prefix=settings.api_prefix)
    app.include_router(notifications_router, prefix=settings.api_prefix)
    app.include_router(registration_router, prefix=settings.api_prefix)
    app.include_router(gate_router, prefix=settings.api_prefix)
    app.include_router(callables_router, prefix=settings.api_prefix)

    return app


# Application instance
app = create_application()
