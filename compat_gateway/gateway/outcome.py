"""Request, outcome and response types for the request gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from compat_gateway.errors import GatewayError
from compat_gateway.services.credentials import Principal
from compat_gateway.services.rate_limit import RateLimitDecision


class GatewayStage(str, Enum):
    """Per-request states, in order. Terminal on the first rejection."""

    RECEIVED = "received"
    DENY_LIST_CHECKED = "deny_list_checked"
    AUTHENTICATED = "authenticated"
    RATE_LIMIT_CHECKED = "rate_limit_checked"
    HANDLED = "handled"
    USAGE_RECORDED = "usage_recorded"
    ABUSE_CHECKED = "abuse_checked"
    RESPONDED = "responded"


@dataclass(frozen=True)
class GatewayRequest:
    """What the gateway needs to know about an inbound request."""

    endpoint: str
    method: str
    origin: str
    authorization: str | None = None
    # Deny-list target (device IMEI) when the request names one
    target: str | None = None
    endpoint_class: str = "lookup"
    require_credential: bool = True
    request_bytes: int = 0
    user_agent: str | None = None


@dataclass
class RequestContext:
    """Mutable per-request state threaded through the pipeline steps."""

    request: GatewayRequest
    stage: GatewayStage = GatewayStage.RECEIVED
    principal: Principal | None = None
    rate_limit: RateLimitDecision | None = None

    @property
    def credential_id(self) -> int | None:
        return self.principal.credential_id if self.principal else None


@dataclass(frozen=True)
class Continue:
    """Step passed; move to the next stage."""


@dataclass(frozen=True)
class Reject:
    """Step failed; respond with ``error`` and stop."""

    error: GatewayError
    rate_limited: bool = False


Outcome = Continue | Reject

CONTINUE = Continue()


@dataclass
class HandlerResult:
    """What a business handler produced."""

    body: Any
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class GatewayResponse:
    """Final response plus how far the request got."""

    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)
    stage: GatewayStage = GatewayStage.RESPONDED
    rejected_at: GatewayStage | None = None
    principal: Principal | None = None
