"""Lookup endpoints.

Every endpoint here runs behind the request gateway: credential,
deny list and rate limit checks happen before the handler is called.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from compat_gateway.api.dependencies import RuntimeDep, origin_of, run_gateway
from compat_gateway.errors import ValidationError
from compat_gateway.gateway import HandlerResult, RequestContext
from compat_gateway.utils.imei import is_valid_imei, normalize_imei

router = APIRouter()


# ---- Request Models ----


class CheckRequest(BaseModel):
    imei: str = Field(..., min_length=1, max_length=32)
    location: str | None = Field(default=None, max_length=256)
    network: str | None = Field(default=None, max_length=64)


class CarriersRequest(BaseModel):
    location: str = Field(..., min_length=1, max_length=256)


class PricingRequest(BaseModel):
    country: str = Field(..., min_length=1, max_length=128)
    carriers: list[str] | None = None


class VoiceRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)
    voice: str = Field(default="default", min_length=1, max_length=64)
    language: str = Field(default="en", min_length=2, max_length=16)


# ---- Endpoints ----


@router.post("/check")
async def check_device(body: CheckRequest, request: Request, runtime: RuntimeDep) -> JSONResponse:
    """Device compatibility check for one IMEI."""
    imei = normalize_imei(body.imei)

    async def handler(ctx: RequestContext) -> HandlerResult:
        if not is_valid_imei(imei):
            raise ValidationError("Invalid IMEI format", details={"imei": body.imei})
        return await runtime.lookups.check_device(
            imei, location=body.location, network=body.network
        )

    return await run_gateway(request, runtime, handler, endpoint_class="check", target=imei)


@router.post("/carriers")
async def carriers(body: CarriersRequest, request: Request, runtime: RuntimeDep) -> JSONResponse:
    """Top carriers for a location. Cached per country."""

    async def handler(ctx: RequestContext) -> HandlerResult:
        return await runtime.lookups.carriers(body.location)

    return await run_gateway(request, runtime, handler)


@router.post("/pricing")
async def pricing(body: PricingRequest, request: Request, runtime: RuntimeDep) -> JSONResponse:
    async def handler(ctx: RequestContext) -> HandlerResult:
        return await runtime.lookups.pricing(body.country, body.carriers)

    return await run_gateway(request, runtime, handler)


@router.get("/network/isp")
async def network_isp(request: Request, runtime: RuntimeDep) -> JSONResponse:
    """ISP of the calling address."""
    address = origin_of(request, runtime)

    async def handler(ctx: RequestContext) -> HandlerResult:
        return await runtime.lookups.isp(address)

    return await run_gateway(request, runtime, handler)


@router.post("/voice")
async def voice(body: VoiceRequest, request: Request, runtime: RuntimeDep) -> JSONResponse:
    async def handler(ctx: RequestContext) -> HandlerResult:
        return await runtime.lookups.voice(body.text, body.voice, body.language)

    return await run_gateway(request, runtime, handler, endpoint_class="voice")
