"""
Reverse proxy from the public gateway to the backend services.
"""
import json
import logging
from typing import Dict, Mapping, Optional

import requests

from core.config import settings

logger = logging.getLogger(__name__)

# Headers that belong to a single connection and are never forwarded
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
}

INTERNAL_SERVICE_HEADER = "x-internal-service"

EXCLUDED_RESPONSE_HEADERS = {
    "content-encoding",
    "transfer-encoding",
    "connection",
    "content-length",
}


class ProxyResponse:
    def __init__(self, status_code: int, content: bytes, headers: Dict[str, str],
                 media_type: Optional[str] = None):
        self.status_code = status_code
        self.content = content
        self.headers = headers
        self.media_type = media_type


class GatewayService:
    def __init__(self, service_urls: Optional[Mapping[str, str]] = None, timeout: float = None):
        self.service_urls = dict(service_urls or {
            "auth": settings.AUTH_SERVICE_URL,
            "users": settings.USER_SERVICE_URL,
            "orders": settings.ORDER_SERVICE_URL,
            "geo": settings.GEO_SERVICE_URL,
            "tracking": settings.GEO_SERVICE_URL,
        })
        self.timeout = settings.GATEWAY_TIMEOUT_SECONDS if timeout is None else timeout

    def get_service_url(self, service: str) -> str:
        """Base URL for a service name; unknown names go to the auth service."""
        url = self.service_urls.get(service)
        if url is None:
            logger.warning(f"Unknown service '{service}', falling back to auth service")
            url = self.service_urls["auth"]
        return url.rstrip("/")

    @staticmethod
    def forward_headers(headers: Mapping[str, str], client_host: Optional[str] = None) -> Dict[str, str]:
        """Backend-bound headers, keyed in lower case, with the caller appended to X-Forwarded-For."""
        forwarded = {
            k.lower(): v for k, v in headers.items()
            if k.lower() not in HOP_BY_HOP_HEADERS and k.lower() != INTERNAL_SERVICE_HEADER
        }
        if client_host:
            prior = forwarded.get("x-forwarded-for")
            forwarded["x-forwarded-for"] = f"{prior}, {client_host}" if prior else client_host
        forwarded[INTERNAL_SERVICE_HEADER] = "gateway"
        return forwarded

    def proxy_request(self, service: str, method: str, path: str, query: str = "",
                      headers: Optional[Mapping[str, str]] = None, body: bytes = b"",
                      client_host: Optional[str] = None) -> ProxyResponse:
        """Forward one request and return the backend answer unchanged."""
        url = f"{self.get_service_url(service)}{path}"
        if query:
            url = f"{url}?{query}"

        try:
            upstream = requests.request(
                method,
                url,
                headers=self.forward_headers(headers or {}, client_host),
                data=body or None,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Proxy request to {service} failed ({method} {path}): {str(e)}")
            return self._unavailable(service)

        response_headers = {
            k: v for k, v in upstream.headers.items()
            if k.lower() not in EXCLUDED_RESPONSE_HEADERS
        }
        logger.info(f"Proxied {method} {path} to {service}: {upstream.status_code}")
        return ProxyResponse(
            upstream.status_code,
            upstream.content,
            response_headers,
            upstream.headers.get("content-type"),
        )

    @staticmethod
    def _unavailable(service: str) -> ProxyResponse:
        body = json.dumps({
            "error": "Service unavailable",
            "message": f"Service {service} unavailable",
        }).encode()
        return ProxyResponse(503, body, {}, "application/json")


_gateway_service: Optional[GatewayService] = None


def get_gateway_service() -> GatewayService:
    global _gateway_service
    if _gateway_service is None:
        _gateway_service = GatewayService()
    return _gateway_service
