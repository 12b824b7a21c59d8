"""Request gateway.

Every public request goes through one ordered pipeline:

    Received -> DenyListChecked -> Authenticated -> RateLimitChecked
             -> Handled -> UsageRecorded -> AbuseChecked -> Responded

Each check is a step returning ``Continue`` or ``Reject``; the first
``Reject`` ends the pipeline. Deny-list checking is split around
authentication: the global list is consulted before the credential is
known, the caller's local list right after. Requests without a
credential pass an address-based fixed window first.

Whatever the outcome, one usage event is submitted to the recorder,
which writes the ledger and runs the abuse monitor off the response
path.
"""

from __future__ import annotations

import json
import time
from collections.abc import Awaitable, Callable
from datetime import datetime

import structlog

from compat_gateway.config import RateLimitConfig
from compat_gateway.errors import DeniedError, GatewayError
from compat_gateway.gateway.outcome import (
    CONTINUE,
    GatewayRequest,
    GatewayResponse,
    GatewayStage,
    HandlerResult,
    Outcome,
    Reject,
    RequestContext,
)
from compat_gateway.models.usage import UsageRecord
from compat_gateway.services.credentials import Authenticator, parse_authorization
from compat_gateway.services.deny_list import DenyListService
from compat_gateway.services.rate_limit import AddressRateLimiter, RateLimiter
from compat_gateway.services.usage import UsageEvent, UsageRecorder
from compat_gateway.utils.datetime import utcnow

logger = structlog.get_logger()

Handler = Callable[[RequestContext], Awaitable[HandlerResult]]
Step = Callable[[RequestContext], Awaitable[Outcome]]


class RequestGateway:
    """Compose deny list, authenticator and rate limiters around a handler."""

    def __init__(
        self,
        *,
        deny_list: DenyListService,
        authenticator: Authenticator,
        rate_limiter: RateLimiter,
        address_limiter: AddressRateLimiter,
        rate_limit_config: RateLimitConfig,
        recorder: UsageRecorder,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._deny_list = deny_list
        self._authenticator = authenticator
        self._rate_limiter = rate_limiter
        self._address_limiter = address_limiter
        self._rate_limit_config = rate_limit_config
        self._recorder = recorder
        self._clock = clock

        self._steps: list[tuple[GatewayStage, Step]] = [
            (GatewayStage.RECEIVED, self._check_address_window),
            (GatewayStage.DENY_LIST_CHECKED, self._check_global_deny_list),
            (GatewayStage.AUTHENTICATED, self._authenticate),
            (GatewayStage.DENY_LIST_CHECKED, self._check_local_deny_list),
            (GatewayStage.RATE_LIMIT_CHECKED, self._check_rate_limit),
        ]

    async def process(self, request: GatewayRequest, handler: Handler) -> GatewayResponse:
        started = time.perf_counter()
        ctx = RequestContext(request=request)
        log = logger.bind(endpoint=request.endpoint, origin=request.origin)

        response: GatewayResponse | None = None
        rate_limited = False
        for stage, step in self._steps:
            outcome = await step(ctx)
            if isinstance(outcome, Reject):
                rate_limited = outcome.rate_limited
                response = self._rejection(ctx, stage, outcome.error)
                log.info(
                    "gateway.rejected",
                    stage=stage.value,
                    error=outcome.error.code,
                    credential_id=ctx.credential_id,
                )
                break
            ctx.stage = max(ctx.stage, stage, key=_stage_order)

        if response is None:
            response = await self._handle(ctx, handler, log)

        self._record(ctx, response, rate_limited, started)
        response.principal = ctx.principal
        response.stage = GatewayStage.RESPONDED
        return response

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _check_address_window(self, ctx: RequestContext) -> Outcome:
        if ctx.request.authorization:
            return CONTINUE
        decision = self._address_limiter.check_and_count(ctx.request.origin)
        if decision.allowed:
            return CONTINUE
        ctx.rate_limit = decision
        return Reject(decision.to_error(), rate_limited=True)

    async def _check_global_deny_list(self, ctx: RequestContext) -> Outcome:
        if not ctx.request.target:
            return CONTINUE
        entry = await self._deny_list.is_globally_denied(ctx.request.target)
        if entry is None:
            return CONTINUE
        return Reject(DeniedError(entry.scope.value, entry.reason, entry.target))

    async def _authenticate(self, ctx: RequestContext) -> Outcome:
        secret = parse_authorization(ctx.request.authorization)
        if secret is None and not ctx.request.require_credential:
            return CONTINUE
        try:
            ctx.principal = await self._authenticator.authenticate(secret)
        except GatewayError as e:
            return Reject(e)
        return CONTINUE

    async def _check_local_deny_list(self, ctx: RequestContext) -> Outcome:
        if not ctx.request.target or ctx.principal is None:
            return CONTINUE
        entry = await self._deny_list.is_locally_denied(
            ctx.request.target, ctx.principal.credential_id
        )
        if entry is None:
            return CONTINUE
        return Reject(DeniedError(entry.scope.value, entry.reason, entry.target))

    async def _check_rate_limit(self, ctx: RequestContext) -> Outcome:
        if ctx.principal is None:
            return CONTINUE
        tier = self._rate_limit_config.tier_for(ctx.principal.tier)
        decision = await self._rate_limiter.check_and_count(
            ctx.principal.credential_id,
            ctx.request.endpoint_class,
            tier,
        )
        ctx.rate_limit = decision
        if decision.allowed:
            return CONTINUE
        logger.warning(
            "gateway.rate_limit.rejected",
            credential_id=ctx.principal.credential_id,
            key_prefix=ctx.principal.key_prefix,
            usage=decision.current_count,
            limit=decision.limit,
        )
        return Reject(decision.to_error(), rate_limited=True)

    # ------------------------------------------------------------------
    # Handling and telemetry
    # ------------------------------------------------------------------

    async def _handle(self, ctx: RequestContext, handler: Handler, log) -> GatewayResponse:
        try:
            result = await handler(ctx)
        except GatewayError as e:
            log.info("gateway.handler.error", error=e.code, status=e.status_code)
            return GatewayResponse(
                status_code=e.status_code,
                body=e.to_dict(),
                headers=dict(e.headers),
            )
        except Exception as e:
            log.exception("gateway.handler.failed", error=str(e))
            error = GatewayError()
            return GatewayResponse(status_code=error.status_code, body=error.to_dict())

        ctx.stage = GatewayStage.HANDLED
        return GatewayResponse(
            status_code=result.status_code,
            body=result.body,
            headers=dict(result.headers),
        )

    @staticmethod
    def _rejection(
        ctx: RequestContext,
        stage: GatewayStage,
        error: GatewayError,
    ) -> GatewayResponse:
        return GatewayResponse(
            status_code=error.status_code,
            body=error.to_dict(),
            headers=dict(error.headers),
            rejected_at=stage,
        )

    def _record(
        self,
        ctx: RequestContext,
        response: GatewayResponse,
        rate_limited: bool,
        started: float,
    ) -> None:
        request = ctx.request
        record = UsageRecord(
            credential_id=ctx.credential_id,
            origin=request.origin,
            endpoint=request.endpoint,
            endpoint_class=request.endpoint_class,
            method=request.method,
            status_code=response.status_code,
            latency_ms=int((time.perf_counter() - started) * 1000),
            rate_limit_exceeded=rate_limited,
            request_bytes=request.request_bytes,
            response_bytes=_body_size(response.body),
            user_agent=request.user_agent,
            timestamp=self._clock(),
        )
        context = {}
        if rate_limited and ctx.rate_limit is not None:
            context = {
                "limit": ctx.rate_limit.limit,
                "usage": ctx.rate_limit.current_count,
                "window_seconds": int(ctx.rate_limit.window.total_seconds()),
            }
        try:
            self._recorder.submit(
                UsageEvent(
                    record=record,
                    label=ctx.principal.label if ctx.principal else None,
                    context=context,
                )
            )
        except Exception as e:
            logger.warning("usage.submit_failed", error=str(e))


_ORDER = {stage: index for index, stage in enumerate(GatewayStage)}


def _stage_order(stage: GatewayStage) -> int:
    return _ORDER[stage]


def _body_size(body) -> int:
    if body is None:
        return 0
    if isinstance(body, (bytes, bytearray)):
        return len(body)
    try:
        return len(json.dumps(body, default=str))
    except (TypeError, ValueError):
        return 0
