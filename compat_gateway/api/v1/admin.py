"""Operator API endpoints.

Credential issuance, usage statistics, notifications, the global deny
list and on-demand maintenance. Protected by the X-Admin-Token header;
disabled when no admin token is configured.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from compat_gateway.api.dependencies import RuntimeDep, require_admin
from compat_gateway.api.v1.denylist import DenyEntryRequest, _entry_to_response, _validate_imei
from compat_gateway.models.credential import Credential, CredentialTier
from compat_gateway.models.notification import AbuseNotification
from compat_gateway.utils.datetime import utcnow

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ---- Request/Response Models ----


class IssueCredentialRequest(BaseModel):
    label: str | None = Field(default=None, max_length=128)
    email: str | None = Field(default=None, max_length=256)
    tier: CredentialTier = CredentialTier.STANDARD


class CredentialResponse(BaseModel):
    id: int
    label: str
    key_prefix: str
    email: str | None
    tier: str
    is_active: bool
    use_count: int
    created_at: datetime
    last_used_at: datetime | None


class IssuedCredentialResponse(CredentialResponse):
    # Plaintext secret, shown exactly once
    api_key: str


class UsageResponse(BaseModel):
    credential: CredentialResponse
    total_requests: int
    requests_last_hour: int
    requests_last_day: int
    rate_limit_violations: int
    average_response_time_ms: float
    recent: list[dict[str, Any]]


class NotificationResponse(BaseModel):
    id: int
    type: str
    severity: str
    title: str
    message: str
    credential_id: int | None
    metadata: dict[str, Any] | None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    unread_count: int


class MaintenanceRunResponse(BaseModel):
    results: list[dict[str, Any]]
    total_cleaned: int
    total_errors: int
    duration_ms: int


def _credential_to_response(credential: Credential) -> CredentialResponse:
    return CredentialResponse(
        id=credential.id,
        label=credential.label,
        key_prefix=credential.key_prefix,
        email=credential.email,
        tier=credential.tier,
        is_active=credential.is_active,
        use_count=credential.use_count,
        created_at=credential.created_at,
        last_used_at=credential.last_used_at,
    )


def _notification_to_response(notification: AbuseNotification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        type=notification.type,
        severity=notification.severity,
        title=notification.title,
        message=notification.message,
        credential_id=notification.credential_id,
        metadata=notification.details,
        is_read=notification.is_read,
        created_at=notification.created_at,
    )


# ---- Credentials ----


@router.post("/credentials", response_model=IssuedCredentialResponse, status_code=201)
async def issue_credential(
    body: IssueCredentialRequest,
    runtime: RuntimeDep,
) -> IssuedCredentialResponse:
    issued = await runtime.credentials.issue(
        label=body.label,
        email=body.email,
        tier=body.tier.value,
    )
    return IssuedCredentialResponse(
        **_credential_to_response(issued.credential).model_dump(),
        api_key=issued.secret,
    )


@router.post("/credentials/{credential_id}/deactivate", response_model=CredentialResponse)
async def deactivate_credential(credential_id: int, runtime: RuntimeDep) -> CredentialResponse:
    credential = await runtime.credentials.deactivate(credential_id)
    return _credential_to_response(credential)


@router.get("/usage/{credential_id}", response_model=UsageResponse)
async def credential_usage(
    credential_id: int,
    runtime: RuntimeDep,
    limit: int = Query(default=20, ge=1, le=500),
) -> UsageResponse:
    credential = await runtime.credentials.get(credential_id)
    stats = await runtime.usage_ledger.stats(credential_id, utcnow())
    recent = await runtime.usage_ledger.recent(credential_id, limit=limit)
    return UsageResponse(
        credential=_credential_to_response(credential),
        total_requests=stats.total_requests,
        requests_last_hour=stats.requests_last_hour,
        requests_last_day=stats.requests_last_day,
        rate_limit_violations=stats.rate_limit_violations,
        average_response_time_ms=stats.average_response_time_ms,
        recent=[
            {
                "endpoint": r.endpoint,
                "method": r.method,
                "status_code": r.status_code,
                "latency_ms": r.latency_ms,
                "rate_limit_exceeded": r.rate_limit_exceeded,
                "timestamp": r.timestamp.isoformat(),
            }
            for r in recent
        ],
    )


# ---- Notifications ----


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    runtime: RuntimeDep,
    unread_only: bool = False,
    limit: int = Query(default=100, ge=1, le=500),
) -> NotificationListResponse:
    items = await runtime.notifications.list_notifications(unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        items=[_notification_to_response(n) for n in items],
        unread_count=await runtime.notifications.unread_count(),
    )


@router.put("/notifications/{notification_id}/read")
async def mark_notification_read(notification_id: int, runtime: RuntimeDep) -> dict:
    await runtime.notifications.mark_read(notification_id)
    return {"success": True, "id": notification_id}


# ---- Global deny list ----


@router.get("/denylist")
async def list_global(runtime: RuntimeDep) -> dict:
    entries = await runtime.deny_list.list_entries(credential_id=None)
    return {
        "count": len(entries),
        "denylist": [_entry_to_response(e) for e in entries],
    }


@router.post("/denylist", status_code=201)
async def add_global(body: DenyEntryRequest, runtime: RuntimeDep) -> dict:
    _validate_imei(body.imei)
    entry = await runtime.deny_list.add(body.imei, body.reason, added_by="operator")
    return {"success": True, "entry": _entry_to_response(entry)}


@router.delete("/denylist/{target}")
async def remove_global(target: str, runtime: RuntimeDep) -> dict:
    await runtime.deny_list.remove(target)
    return {"success": True, "imei": target}


# ---- Maintenance ----


@router.post("/maintenance/run", response_model=MaintenanceRunResponse)
async def run_maintenance(runtime: RuntimeDep) -> MaintenanceRunResponse:
    """Run one maintenance cycle synchronously and report per-task results."""
    start = time.monotonic()
    results = await runtime.maintenance.run_once()
    return MaintenanceRunResponse(
        results=[r.to_dict() for r in results],
        total_cleaned=sum(r.cleaned_count for r in results),
        total_errors=sum(len(r.errors) for r in results),
        duration_ms=int((time.monotonic() - start) * 1000),
    )
