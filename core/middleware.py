"""
Custom middleware for request/response handling and monitoring
"""
import time
import uuid
import logging
import threading
from typing import Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from core.exceptions import RateLimitError
from core.metrics import ApiCallMetrics

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses"""

    def __init__(self, app, metrics: Optional[ApiCallMetrics] = None):
        super().__init__(app)
        self.metrics = metrics or ApiCallMetrics()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # Keep the caller's request id when the gateway already assigned one
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(
            f"Request {request_id}: {request.method} {request.url} - "
            f"Client: {request.client.host if request.client else 'unknown'}"
        )

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            self.metrics.record(
                f"{request.method} {request.url.path}",
                process_time * 1000,
                response.status_code
            )

            logger.info(
                f"Response {request_id}: {response.status_code} - "
                f"Time: {process_time:.3f}s"
            )

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{process_time:.3f}"

            return response

        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"Request {request_id} failed: {str(e)} - "
                f"Time: {process_time:.3f}s"
            )
            raise


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(self), microphone=(), camera=(), "
            "payment=(), usb=(), magnetometer=(), gyroscope=()"
        )

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Simple per-client rate limiting middleware"""

    def __init__(self, app, calls: int = 100, period: int = 60):
        super().__init__(app)
        self.calls = calls
        self.period = period
        self.clients = {}

    @staticmethod
    def client_key(request: Request) -> str:
        """Client address; behind the gateway, the last hop it added to X-Forwarded-For."""
        if request.headers.get("X-Internal-Service") == "gateway":
            forwarded_for = request.headers.get("X-Forwarded-For", "")
            hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
            if hops:
                return hops[-1]
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        client_ip = self.client_key(request)
        current_time = time.time()

        # Clean old entries
        self.clients = {
            ip: calls for ip, calls in self.clients.items()
            if current_time - calls[-1] < self.period
        }

        if client_ip in self.clients:
            calls = [call_time for call_time in self.clients[client_ip] if current_time - call_time < self.period]

            if len(calls) >= self.calls:
                logger.warning(f"Rate limit exceeded for {client_ip}")
                return Response(
                    content='{"success": false, "message": "Rate limit exceeded"}',
                    status_code=429,
                    media_type="application/json"
                )

            calls.append(current_time)
            self.clients[client_ip] = calls
        else:
            self.clients[client_ip] = [current_time]

        return await call_next(request)


class RouteRateLimiter:
    """Per-client request budget for a single endpoint, used as a route dependency"""

    def __init__(self, calls: int, period: int = 60, scope: str = "request"):
        self.calls = calls
        self.period = period
        self.scope = scope
        self.clients = {}
        self._lock = threading.Lock()

    def __call__(self, request: Request) -> None:
        client_ip = RateLimitMiddleware.client_key(request)
        current_time = time.time()

        with self._lock:
            self.clients = {
                ip: calls for ip, calls in self.clients.items()
                if current_time - calls[-1] < self.period
            }
            calls = [t for t in self.clients.get(client_ip, []) if current_time - t < self.period]

            if len(calls) >= self.calls:
                retry_after = int(self.period - (current_time - calls[0])) + 1
                logger.warning(f"{self.scope.capitalize()} rate limit exceeded for {client_ip}")
                raise RateLimitError(
                    f"Too many {self.scope} attempts, please try again later",
                    details={"retry_after": retry_after}
                )

            calls.append(current_time)
            self.clients[client_ip] = calls
