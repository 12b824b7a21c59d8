"""Request gateway: deny list, authentication, rate limiting and telemetry."""

from compat_gateway.gateway.outcome import (
    Continue,
    GatewayRequest,
    GatewayResponse,
    GatewayStage,
    HandlerResult,
    Outcome,
    Reject,
    RequestContext,
)
from compat_gateway.gateway.pipeline import RequestGateway

__all__ = [
    "Continue",
    "GatewayRequest",
    "GatewayResponse",
    "GatewayStage",
    "HandlerResult",
    "Outcome",
    "Reject",
    "RequestContext",
    "RequestGateway",
]
