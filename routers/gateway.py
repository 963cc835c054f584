from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool
import logging

from services.gateway import GatewayService, get_gateway_service

logger = logging.getLogger(__name__)

router = APIRouter()

PROXIED_SERVICES = ("auth", "users", "orders", "geo", "tracking")
PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

def _make_proxy_endpoint(service: str):
    async def proxy(request: Request, gateway: GatewayService = Depends(get_gateway_service)):
        headers = dict(request.headers)
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            headers["x-request-id"] = request_id

        body = await request.body()
        result = await run_in_threadpool(
            gateway.proxy_request,
            service,
            request.method,
            request.url.path,
            request.url.query,
            headers,
            body,
            request.client.host if request.client else None
        )
        return Response(
            content=result.content,
            status_code=result.status_code,
            headers=result.headers,
            media_type=result.media_type
        )

    proxy.__name__ = f"proxy_{service}"
    return proxy

for _service in PROXIED_SERVICES:
    _endpoint = _make_proxy_endpoint(_service)
    router.add_api_route(f"/{_service}", _endpoint, methods=PROXY_METHODS, include_in_schema=False)
    router.add_api_route(f"/{_service}/{{path:path}}", _endpoint, methods=PROXY_METHODS, include_in_schema=False)
