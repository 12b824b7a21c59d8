"""Unit tests for RequestGateway.

Exercises the full pipeline against real stores: deny list scoping,
authentication failures, rate limiting and usage recording.
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from compat_gateway.config import RateLimitConfig, RateLimitTier
from compat_gateway.errors import NotFoundError
from compat_gateway.gateway import (
    GatewayRequest,
    GatewayStage,
    HandlerResult,
    RequestContext,
    RequestGateway,
)
from compat_gateway.services.abuse import AbuseMonitor, StoreNotifier
from compat_gateway.services.credentials import (
    Authenticator,
    CredentialService,
    IssuedCredential,
)
from compat_gateway.services.deny_list import DenyListService
from compat_gateway.services.rate_limit import AddressRateLimiter, SlidingWindowRateLimiter
from compat_gateway.services.tasks import BackgroundTaskSet
from compat_gateway.services.usage import UsageRecorder

IMEI = "356938035643809"


@dataclass
class Harness:
    gateway: RequestGateway
    recorder: UsageRecorder
    credentials: CredentialService
    deny_list: DenyListService
    tasks: BackgroundTaskSet

    async def issue(self, **kwargs) -> IssuedCredential:
        return await self.credentials.issue(**kwargs)

    async def settle(self) -> None:
        await self.recorder.flush()
        await self.tasks.drain()


@pytest.fixture
async def harness(
    credential_store,
    deny_store,
    usage_ledger,
    notification_store,
    clock,
):
    rate_limit = RateLimitConfig(
        tiers={
            "standard": RateLimitTier(window_seconds=3600, max_requests=3),
            "premium": RateLimitTier(window_seconds=3600, max_requests=5),
        },
        address=RateLimitTier(window_seconds=3600, max_requests=2),
    )
    tasks = BackgroundTaskSet()
    monitor = AbuseMonitor(usage_ledger, StoreNotifier(notification_store), clock=clock)
    recorder = UsageRecorder(usage_ledger, monitor)
    deny_list = DenyListService(deny_store)
    gateway = RequestGateway(
        deny_list=deny_list,
        authenticator=Authenticator(credential_store, tasks=tasks),
        rate_limiter=SlidingWindowRateLimiter(usage_ledger, clock=clock),
        address_limiter=AddressRateLimiter(rate_limit.address, clock=clock),
        rate_limit_config=rate_limit,
        recorder=recorder,
        clock=clock,
    )
    await recorder.start()
    yield Harness(gateway, recorder, CredentialService(credential_store), deny_list, tasks)
    await recorder.stop()
    await tasks.drain()


def _request(secret: str | None = None, **kwargs) -> GatewayRequest:
    kwargs.setdefault("endpoint", "/v1/check")
    kwargs.setdefault("method", "POST")
    kwargs.setdefault("origin", "203.0.113.7")
    return GatewayRequest(
        authorization=f"Bearer {secret}" if secret else None,
        **kwargs,
    )


class RecordingHandler:
    def __init__(self, result: HandlerResult | None = None, error: Exception | None = None):
        self.result = result or HandlerResult(body={"success": True})
        self.error = error
        self.contexts: list[RequestContext] = []

    async def __call__(self, ctx: RequestContext) -> HandlerResult:
        self.contexts.append(ctx)
        if self.error is not None:
            raise self.error
        return self.result


class TestHappyPath:
    async def test_authenticated_request_reaches_handler(self, harness):
        issued = await harness.issue(label="CI")
        handler = RecordingHandler()

        response = await harness.gateway.process(_request(issued.secret, target=IMEI), handler)

        assert response.status_code == 200
        assert response.body == {"success": True}
        assert response.stage is GatewayStage.RESPONDED
        assert response.rejected_at is None
        assert response.principal.label == "CI"
        ctx = handler.contexts[0]
        assert ctx.stage is GatewayStage.RATE_LIMIT_CHECKED
        assert ctx.rate_limit.allowed

    async def test_usage_recorded_for_every_outcome(self, harness, usage_ledger, clock):
        issued = await harness.issue()

        await harness.gateway.process(_request(issued.secret), RecordingHandler())
        await harness.gateway.process(_request("imei_not-a-real-key"), RecordingHandler())
        await harness.settle()

        records = await usage_ledger.recent(issued.credential.id)
        assert [r.status_code for r in records] == [200]
        assert harness.recorder.written == 2


class TestAuthenticationStage:
    async def test_missing_credential(self, harness):
        handler = RecordingHandler()

        response = await harness.gateway.process(_request(), handler)

        assert response.status_code == 401
        assert response.body["error"] == "authentication_required"
        assert response.rejected_at is GatewayStage.AUTHENTICATED
        assert handler.contexts == []

    async def test_malformed_credential(self, harness):
        response = await harness.gateway.process(_request("sk_live_123"), RecordingHandler())

        assert response.status_code == 401
        assert response.body["error"] == "malformed_credential"

    async def test_unknown_credential(self, harness):
        response = await harness.gateway.process(_request("imei_abcdef_123"), RecordingHandler())

        assert response.body["error"] == "invalid_credential"

    async def test_anonymous_allowed_when_not_required(self, harness):
        handler = RecordingHandler()

        response = await harness.gateway.process(
            _request(endpoint="/web/check", require_credential=False), handler
        )

        assert response.status_code == 200
        assert handler.contexts[0].principal is None


class TestDenyListStages:
    async def test_global_entry_blocks_authenticated_and_anonymous(self, harness):
        issued = await harness.issue()
        await harness.deny_list.add(IMEI, "reported stolen")

        authed = await harness.gateway.process(
            _request(issued.secret, target=IMEI), RecordingHandler()
        )
        anonymous = await harness.gateway.process(
            _request(target=IMEI, require_credential=False), RecordingHandler()
        )

        for response in (authed, anonymous):
            assert response.status_code == 403
            assert response.body["error"] == "Blacklisted"
            assert response.body["scope"] == "global"
            assert response.body["reason"] == "reported stolen"
            assert response.rejected_at is GatewayStage.DENY_LIST_CHECKED

    async def test_global_check_precedes_authentication(self, harness):
        """A denied target is rejected even with a bogus credential."""
        await harness.deny_list.add(IMEI, "fraud")

        response = await harness.gateway.process(
            _request("imei_bogus_1", target=IMEI), RecordingHandler()
        )

        assert response.status_code == 403

    async def test_local_entry_only_blocks_owner(self, harness):
        owner = await harness.issue(label="owner")
        other = await harness.issue(label="other")
        await harness.deny_list.add(IMEI, "lost", credential_id=owner.credential.id)

        blocked = await harness.gateway.process(
            _request(owner.secret, target=IMEI), RecordingHandler()
        )
        allowed = await harness.gateway.process(
            _request(other.secret, target=IMEI), RecordingHandler()
        )

        assert blocked.status_code == 403
        assert blocked.body["scope"] == "local"
        assert "local" in blocked.body["message"]
        assert allowed.status_code == 200


class TestRateLimitStage:
    async def test_over_limit_rejected_with_details(self, harness):
        issued = await harness.issue()

        statuses = [
            (await harness.gateway.process(_request(issued.secret), RecordingHandler())).status_code
            for _ in range(3)
        ]
        rejected = await harness.gateway.process(_request(issued.secret), RecordingHandler())

        assert statuses == [200, 200, 200]
        assert rejected.status_code == 429
        assert rejected.rejected_at is GatewayStage.RATE_LIMIT_CHECKED
        assert rejected.body["details"]["limit"] == 3
        assert rejected.body["details"]["usage"] == 3
        assert rejected.body["details"]["windowMs"] == 3_600_000
        assert int(rejected.headers["Retry-After"]) >= 1

    async def test_tier_sets_limit(self, harness):
        issued = await harness.issue(tier="premium")

        for _ in range(5):
            response = await harness.gateway.process(_request(issued.secret), RecordingHandler())
            assert response.status_code == 200

    async def test_rate_limit_raises_notification(self, harness, notification_store):
        issued = await harness.issue(label="Noisy")
        for _ in range(4):
            await harness.gateway.process(_request(issued.secret), RecordingHandler())

        await harness.settle()

        notifications = await notification_store.list_recent()
        assert [n.type for n in notifications] == ["rate_limit_exceeded"]
        assert notifications[0].credential_id == issued.credential.id
        assert notifications[0].details["limit"] == 3

    async def test_address_window_for_anonymous_requests(self, harness):
        anonymous = _request(endpoint="/web/check", require_credential=False)

        first = await harness.gateway.process(anonymous, RecordingHandler())
        second = await harness.gateway.process(anonymous, RecordingHandler())
        third = await harness.gateway.process(anonymous, RecordingHandler())

        assert [first.status_code, second.status_code] == [200, 200]
        assert third.status_code == 429
        assert third.rejected_at is GatewayStage.RECEIVED


class TestHandlerFailures:
    async def test_gateway_error_rendered(self, harness):
        issued = await harness.issue()

        response = await harness.gateway.process(
            _request(issued.secret), RecordingHandler(error=NotFoundError("no such device"))
        )

        assert response.status_code == 404
        assert response.body == {"error": "not_found", "message": "no such device"}
        assert response.rejected_at is None

    async def test_unexpected_error_is_500(self, harness):
        issued = await harness.issue()

        response = await harness.gateway.process(
            _request(issued.secret), RecordingHandler(error=RuntimeError("bug"))
        )

        assert response.status_code == 500
        assert response.body["error"] == "internal_error"

    async def test_handler_status_passed_through(self, harness):
        issued = await harness.issue()
        handler = RecordingHandler(HandlerResult(body={"success": False}, status_code=502))

        response = await harness.gateway.process(_request(issued.secret), handler)

        assert response.status_code == 502
