"""Anonymous web endpoints.

Used by the public web page. No credential: the address window and the
global deny list still apply.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from compat_gateway.api.dependencies import RuntimeDep, run_gateway
from compat_gateway.api.v1.lookups import CheckRequest
from compat_gateway.errors import ValidationError
from compat_gateway.gateway import HandlerResult, RequestContext
from compat_gateway.utils.imei import is_valid_imei, normalize_imei

router = APIRouter(prefix="/web", tags=["web"])


@router.post("/check")
async def web_check(body: CheckRequest, request: Request, runtime: RuntimeDep) -> JSONResponse:
    imei = normalize_imei(body.imei)

    async def handler(ctx: RequestContext) -> HandlerResult:
        if not is_valid_imei(imei):
            raise ValidationError("Invalid IMEI format", details={"imei": body.imei})
        return await runtime.lookups.check_device(
            imei, location=body.location, network=body.network
        )

    return await run_gateway(
        request,
        runtime,
        handler,
        endpoint_class="web",
        target=imei,
        require_credential=False,
    )
