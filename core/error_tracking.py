"""
Error reporting to Sentry.

This module is the single integration point between request handling and
the external error tracker: the global exception handlers registered in
``core.app`` call :func:`report_exception`, nothing else talks to Sentry.
"""
import logging
from typing import Any, Dict, Mapping, Optional

import requests
import sentry_sdk
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from core.config import settings
from core.exceptions import ValidationError as CustomValidationError

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key")

REPORTABLE_CLIENT_ERRORS = (
    status.HTTP_401_UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN,
    status.HTTP_404_NOT_FOUND,
    status.HTTP_409_CONFLICT,
)

EXPECTED_MISSING_PATHS = ("/favicon.ico", "/robots.txt", "/sitemap.xml")

_IGNORED_EXCEPTIONS = (
    ConnectionResetError,
    TimeoutError,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    RequestValidationError,
    PydanticValidationError,
    CustomValidationError,
)


def before_send(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Drop expected network noise and user validation errors."""
    exc_info = hint.get("exc_info")
    if exc_info:
        exc = exc_info[1]
        if isinstance(exc, _IGNORED_EXCEPTIONS):
            return None
        message = str(exc)
        if "ECONNRESET" in message or "ETIMEDOUT" in message or "socket hang up" in message:
            return None
    return event


def init_error_tracking(service_name: str) -> bool:
    """Initialise Sentry when a DSN is configured. Returns True if enabled."""
    if not settings.SENTRY_DSN:
        logger.warning("Sentry DSN not provided. Error tracking will not be initialized.")
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=settings.APP_VERSION,
        traces_sample_rate=0.1 if settings.ENVIRONMENT == "production" else settings.SENTRY_TRACES_SAMPLE_RATE,
        debug=settings.ENVIRONMENT == "development" and settings.DEBUG,
        before_send=before_send,
    )
    sentry_sdk.set_tag("app", "delivery-api")
    sentry_sdk.set_tag("service", service_name)
    sentry_sdk.set_tag("framework", "fastapi")

    logger.info(f"Sentry initialized for environment: {settings.ENVIRONMENT}")
    return True


def sanitize_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    sanitized = {key.lower(): value for key, value in headers.items()}
    for header in SENSITIVE_HEADERS:
        if header in sanitized:
            sanitized[header] = "[REDACTED]"
    return sanitized


def should_report(status_code: int, path: str = "") -> bool:
    """5xx errors always; 4xx only for the curated subset."""
    if status_code >= 500:
        return True
    if status_code in REPORTABLE_CLIENT_ERRORS:
        if status_code == status.HTTP_404_NOT_FOUND:
            return path not in EXPECTED_MISSING_PATHS
        return True
    return False


def report_exception(request: Request, exc: BaseException, status_code: int, message: str = "") -> bool:
    """Send the exception to Sentry with request context if it qualifies."""
    path = request.url.path
    if not should_report(status_code, path):
        return False

    with sentry_sdk.new_scope() as scope:
        scope.set_context("request", {
            "url": str(request.url),
            "method": request.method,
            "headers": sanitize_headers(request.headers),
            "query": dict(request.query_params),
            "path_params": dict(request.path_params),
            "client": request.client.host if request.client else None,
        })

        user_id = getattr(request.state, "user_id", None)
        if user_id is not None:
            scope.set_user({"id": str(user_id)})

        route = request.scope.get("route")
        scope.set_tag("http_status", status_code)
        scope.set_tag("http_method", request.method)
        scope.set_tag("endpoint", getattr(route, "path", path))
        scope.set_level("error" if status_code >= 500 else "warning")

        if status_code >= 500:
            sentry_sdk.capture_exception(exc)
        else:
            sentry_sdk.capture_message(f"HTTP {status_code}: {message or exc}", level="warning")

    return True
