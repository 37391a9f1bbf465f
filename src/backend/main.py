"""
ProductScout Backend Application

Crowd-funded product testing: users vote for the products they want
tested, and products that reach their funding threshold enter the lab
queue.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from api.v1 import router as api_v1_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.exceptions import (
    ConcurrencyExhausted,
    ExternalDependencyFailure,
    NotFoundError,
    ValidationFailure,
)
from core.logging import configure_logging
from core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware

logger = structlog.get_logger(__name__)

SERVICE_UNAVAILABLE_DETAIL = "The service is busy. Please try again."


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    await create_start_app_handler(app)()
    yield
    # Shutdown
    await create_stop_app_handler(app)()


def register_exception_handlers(application: FastAPI) -> None:
    """Map domain errors to HTTP responses."""

    @application.exception_handler(ValidationFailure)
    async def validation_failure_handler(request: Request, exc: ValidationFailure) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @application.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @application.exception_handler(ConcurrencyExhausted)
    async def concurrency_exhausted_handler(request: Request, exc: ConcurrencyExhausted) -> JSONResponse:
        logger.error(
            "concurrency_exhausted",
            label=exc.label,
            attempts=exc.attempts,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": SERVICE_UNAVAILABLE_DETAIL},
        )

    @application.exception_handler(ExternalDependencyFailure)
    async def dependency_failure_handler(request: Request, exc: ExternalDependencyFailure) -> JSONResponse:
        logger.error("external_dependency_failure", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": SERVICE_UNAVAILABLE_DETAIL},
        )

    # Add global exception handler to ensure CORS headers are present on error responses
    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler to catch unhandled exceptions.

        The response is a structured JSON body that the CORS middleware can
        still decorate; details stay in the server logs.
        """
        logger.exception(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "An internal server error occurred. Please try again later.",
                "error_type": type(exc).__name__ if settings.DEBUG else "InternalServerError",
            },
        )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    application = FastAPI(
        title=settings.APP_NAME,
        description="Weighted product voting and testing queue",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - processed in reverse)
    # 1. Security headers - added to all responses
    application.add_middleware(SecurityHeadersMiddleware)

    # 2. CORS - restricted to specific methods and headers
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "X-Admin-Key",
            "X-Fingerprint",
            "X-Request-ID",
        ],
        expose_headers=["X-Request-ID"],
    )

    # 3. GZip compression for responses
    application.add_middleware(GZipMiddleware, minimum_size=1000)

    # 4. Request id - outermost so every log line carries it
    application.add_middleware(RequestContextMiddleware)

    application.include_router(api_v1_router, prefix="/api/v1")
    register_exception_handlers(application)

    @application.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "healthy",
            "service": "productscout-api",
            "store": "cosmos" if settings.cosmos_enabled else "memory",
        }

    return application


app = create_application()
