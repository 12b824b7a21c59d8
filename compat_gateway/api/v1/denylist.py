"""Local deny-list endpoints.

A credential manages its own list; entries added here only ever block
requests made with the same credential.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from compat_gateway.api.dependencies import RuntimeDep, run_gateway
from compat_gateway.errors import ValidationError
from compat_gateway.gateway import HandlerResult, RequestContext
from compat_gateway.models.deny import DenyEntry
from compat_gateway.utils.imei import is_valid_imei

router = APIRouter()


class DenyEntryRequest(BaseModel):
    imei: str = Field(..., min_length=1, max_length=32)
    reason: str = Field(default="", max_length=500)


class DenyEntryResponse(BaseModel):
    id: int
    imei: str
    reason: str
    scope: str
    added_by: str
    created_at: datetime


def _entry_to_response(entry: DenyEntry) -> dict:
    return DenyEntryResponse(
        id=entry.id,
        imei=entry.target,
        reason=entry.reason,
        scope=entry.scope.value,
        added_by=entry.added_by,
        created_at=entry.created_at,
    ).model_dump(mode="json")


def _validate_imei(imei: str) -> None:
    if not is_valid_imei(imei):
        raise ValidationError("IMEI must be 15 digits", details={"imei": imei})


@router.get("")
async def list_local(request: Request, runtime: RuntimeDep) -> JSONResponse:
    async def handler(ctx: RequestContext) -> HandlerResult:
        entries = await runtime.deny_list.list_entries(credential_id=ctx.credential_id)
        return HandlerResult(
            body={
                "success": True,
                "count": len(entries),
                "denylist": [_entry_to_response(e) for e in entries],
            }
        )

    return await run_gateway(request, runtime, handler, endpoint_class="denylist")


@router.post("")
async def add_local(body: DenyEntryRequest, request: Request, runtime: RuntimeDep) -> JSONResponse:
    async def handler(ctx: RequestContext) -> HandlerResult:
        _validate_imei(body.imei)
        entry = await runtime.deny_list.add(
            body.imei,
            body.reason,
            credential_id=ctx.credential_id,
            added_by=ctx.principal.label if ctx.principal else "unknown",
        )
        return HandlerResult(
            status_code=201,
            body={"success": True, "entry": _entry_to_response(entry)},
        )

    return await run_gateway(request, runtime, handler, endpoint_class="denylist")


@router.delete("/{target}")
async def remove_local(target: str, request: Request, runtime: RuntimeDep) -> JSONResponse:
    async def handler(ctx: RequestContext) -> HandlerResult:
        _validate_imei(target)
        await runtime.deny_list.remove(target, credential_id=ctx.credential_id)
        return HandlerResult(body={"success": True, "imei": target})

    return await run_gateway(request, runtime, handler, endpoint_class="denylist")
