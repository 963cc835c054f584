"""
Application factory shared by the gateway and every backend service.
"""
import logging
from typing import Iterable, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings
from core.error_tracking import init_error_tracking, report_exception
from core.exceptions import BaseCustomException
from core.metrics import ApiCallMetrics
from core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RateLimitMiddleware,
)
from core.response import error_response, health_response

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the global handlers; each one feeds the error tracker."""

    @app.exception_handler(BaseCustomException)
    async def custom_exception_handler(request: Request, exc: BaseCustomException):
        """Handle custom exceptions with standardized response format."""
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(f"Custom exception [{request_id}] on {request.method} {request.url}: {exc.message}")
        report_exception(request, exc, exc.status_code, exc.message)

        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(
                message=exc.message,
                error_code=exc.__class__.__name__,
                details=exc.details
            )
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors with detailed error messages."""
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(f"Validation error [{request_id}] on {request.method} {request.url}: {exc}")

        error_details = []
        for error in exc.errors():
            field = '.'.join(str(x) for x in error['loc'])
            error_details.append({
                "field": field,
                "message": error['msg'],
                "type": error['type']
            })

        return JSONResponse(
            status_code=422,
            content=error_response(
                message="Request validation failed",
                error_code="VALIDATION_ERROR",
                details={"errors": error_details}
            )
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with logging."""
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(f"HTTP exception [{request_id}] on {request.method} {request.url}: {exc.detail}")
        message = str(exc.detail) if isinstance(exc.detail, str) else "HTTP error occurred"
        report_exception(request, exc, exc.status_code, message)

        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(
                message=message,
                error_code="HTTP_ERROR",
                details={"status_code": exc.status_code, "detail": exc.detail}
            ),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors."""
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(f"Unexpected error [{request_id}] on {request.method} {request.url}: {str(exc)}", exc_info=True)
        report_exception(request, exc, 500)

        return JSONResponse(
            status_code=500,
            content=error_response(
                message="An unexpected error occurred. Please try again.",
                error_code="INTERNAL_SERVER_ERROR",
                details={"request_id": request_id}
            )
        )


def create_app(
    service_name: str,
    title: str,
    routers: Iterable[APIRouter] = (),
    create_db: bool = True,
    rate_limit: Optional[int] = None,
) -> FastAPI:
    """Build a FastAPI app with the shared middleware, handlers and health route."""
    app = FastAPI(
        title=title,
        description=f"{title} for the delivery logistics platform",
        version=settings.APP_VERSION
    )
    app.state.service_name = service_name
    app.state.api_metrics = ApiCallMetrics(settings.SLOW_REQUEST_THRESHOLD_MS)

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    # Order matters: first added is executed last
    app.add_middleware(RateLimitMiddleware, calls=rate_limit or settings.RATE_LIMIT_CALLS, period=settings.RATE_LIMIT_PERIOD)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware, metrics=app.state.api_metrics)

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return health_response(service_name, settings.ENVIRONMENT)

    for router in routers:
        app.include_router(router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize the service on startup."""
        logger.info(f"Starting up {title}...")
        init_error_tracking(service_name)
        if create_db:
            from database.connection import create_tables
            create_tables()
            logger.info("Database tables created successfully")
        logger.info(f"{title} started successfully")

    return app
