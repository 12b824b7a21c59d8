"""FastAPI dependencies.

Provides:
- The application runtime (all wired services)
- Operator authentication
- ``run_gateway``: push a request through the RequestGateway and turn
  the result into a JSONResponse
"""

from __future__ import annotations

import hmac
from typing import Annotated

import structlog
from fastapi import Depends, Request
from fastapi.responses import JSONResponse

from compat_gateway.errors import ForbiddenError
from compat_gateway.gateway import GatewayRequest
from compat_gateway.gateway.pipeline import Handler
from compat_gateway.runtime import GatewayRuntime
from compat_gateway.utils.network import client_address

logger = structlog.get_logger()


def get_runtime(request: Request) -> GatewayRuntime:
    return request.app.state.runtime


RuntimeDep = Annotated[GatewayRuntime, Depends(get_runtime)]


def require_admin(request: Request, runtime: RuntimeDep) -> str:
    """Check the X-Admin-Token header.

    Returns:
        "operator"

    Raises:
        ForbiddenError: operator API disabled or token mismatch
    """
    expected = runtime.settings.security.admin_token
    if not expected:
        raise ForbiddenError("Operator API is disabled")

    presented = request.headers.get("X-Admin-Token", "")
    if not hmac.compare_digest(presented.encode(), expected.encode()):
        logger.warning("admin.auth.failed", origin=request.client.host if request.client else None)
        raise ForbiddenError("Invalid admin token")
    return "operator"


AdminDep = Annotated[str, Depends(require_admin)]


def origin_of(request: Request, runtime: GatewayRuntime) -> str:
    return client_address(
        request, trusted_proxy_hops=runtime.settings.security.trusted_proxy_hops
    )


async def run_gateway(
    request: Request,
    runtime: GatewayRuntime,
    handler: Handler,
    *,
    endpoint_class: str = "lookup",
    target: str | None = None,
    require_credential: bool = True,
) -> JSONResponse:
    """Process ``request`` through the gateway and render the response."""
    try:
        request_bytes = int(request.headers.get("content-length", 0))
    except ValueError:
        request_bytes = 0

    gateway_request = GatewayRequest(
        endpoint=request.url.path,
        method=request.method,
        origin=origin_of(request, runtime),
        authorization=request.headers.get("Authorization"),
        target=target,
        endpoint_class=endpoint_class,
        require_credential=require_credential,
        request_bytes=request_bytes,
        user_agent=request.headers.get("User-Agent"),
    )
    response = await runtime.gateway.process(gateway_request, handler)

    body = response.body
    request_id = getattr(request.state, "request_id", None)
    if response.status_code >= 400 and isinstance(body, dict) and request_id:
        body = {**body, "request_id": request_id}

    return JSONResponse(
        status_code=response.status_code,
        content=body,
        headers=response.headers,
    )
