"""Application runtime: every long-lived component, wired once."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from compat_gateway.config import Settings
from compat_gateway.db import SessionFactory
from compat_gateway.gateway.pipeline import RequestGateway
from compat_gateway.services.abuse import AbuseMonitor, StoreNotifier
from compat_gateway.services.cache import CacheGateway, CacheKinds
from compat_gateway.services.credentials import Authenticator, CredentialService
from compat_gateway.services.deny_list import DenyListService
from compat_gateway.services.http import HTTPClientManager
from compat_gateway.services.lookups import LookupService
from compat_gateway.services.maintenance import (
    ExpiredCacheTask,
    MaintenanceScheduler,
    RateWindowPruneTask,
    UsageRetentionTask,
)
from compat_gateway.services.notifications import NotificationService
from compat_gateway.services.rate_limit import (
    AddressRateLimiter,
    RateLimiter,
    build_rate_limiter,
)
from compat_gateway.services.tasks import BackgroundTaskSet
from compat_gateway.services.upstream import Collaborators, build_collaborators
from compat_gateway.services.usage import UsageRecorder
from compat_gateway.stores import (
    CacheStore,
    CredentialStore,
    DenyListStore,
    NotificationStore,
    UsageLedger,
)
from compat_gateway.utils.datetime import utcnow

logger = structlog.get_logger()


@dataclass
class GatewayRuntime:
    settings: Settings
    http: HTTPClientManager
    tasks: BackgroundTaskSet

    credential_store: CredentialStore
    usage_ledger: UsageLedger
    cache_store: CacheStore
    deny_store: DenyListStore
    notification_store: NotificationStore

    credentials: CredentialService
    authenticator: Authenticator
    deny_list: DenyListService
    rate_limiter: RateLimiter
    address_limiter: AddressRateLimiter
    cache: CacheGateway
    lookups: LookupService
    notifications: NotificationService
    recorder: UsageRecorder
    maintenance: MaintenanceScheduler
    gateway: RequestGateway

    @classmethod
    def build(
        cls,
        settings: Settings,
        session_factory: SessionFactory,
        *,
        collaborators: Collaborators | None = None,
        http: HTTPClientManager | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> GatewayRuntime:
        http = http or HTTPClientManager.from_config(settings.upstream)
        collaborators = collaborators or build_collaborators(settings.upstream, http)
        tasks = BackgroundTaskSet()
        prefix = settings.security.credential_prefix

        credential_store = CredentialStore(session_factory)
        usage_ledger = UsageLedger(session_factory)
        cache_store = CacheStore(session_factory)
        deny_store = DenyListStore(session_factory)
        notification_store = NotificationStore(session_factory)

        monitor = None
        if settings.abuse.enabled:
            monitor = AbuseMonitor(
                usage_ledger,
                StoreNotifier(notification_store),
                error_threshold=settings.abuse.error_threshold,
                window=timedelta(seconds=settings.abuse.window_seconds),
                clock=clock,
            )
        recorder = UsageRecorder(
            usage_ledger,
            monitor,
            queue_size=settings.usage.queue_size,
            workers=settings.usage.workers,
            batch_size=settings.usage.batch_size,
        )

        authenticator = Authenticator(credential_store, prefix=prefix, tasks=tasks)
        deny_list = DenyListService(deny_store)
        rate_limiter = build_rate_limiter(settings.rate_limit, usage_ledger, clock=clock)
        address_limiter = AddressRateLimiter(settings.rate_limit.address, clock=clock)
        cache = CacheGateway(
            cache_store,
            compute_timeout=settings.upstream.timeout_seconds,
            dedupe_inflight=settings.cache.dedupe_inflight,
            clock=clock,
        )

        maintenance = MaintenanceScheduler(
            tasks=[
                ExpiredCacheTask(cache_store, clock=clock),
                UsageRetentionTask(
                    usage_ledger,
                    retention=timedelta(days=settings.maintenance.usage_retention_days),
                    clock=clock,
                ),
                RateWindowPruneTask(rate_limiter, address_limiter),
            ],
            config=settings.maintenance,
        )

        gateway = RequestGateway(
            deny_list=deny_list,
            authenticator=authenticator,
            rate_limiter=rate_limiter,
            address_limiter=address_limiter,
            rate_limit_config=settings.rate_limit,
            recorder=recorder,
            clock=clock,
        )

        return cls(
            settings=settings,
            http=http,
            tasks=tasks,
            credential_store=credential_store,
            usage_ledger=usage_ledger,
            cache_store=cache_store,
            deny_store=deny_store,
            notification_store=notification_store,
            credentials=CredentialService(credential_store, prefix=prefix),
            authenticator=authenticator,
            deny_list=deny_list,
            rate_limiter=rate_limiter,
            address_limiter=address_limiter,
            cache=cache,
            lookups=LookupService(cache, collaborators, CacheKinds.from_config(settings.cache)),
            notifications=NotificationService(notification_store),
            recorder=recorder,
            maintenance=maintenance,
            gateway=gateway,
        )

    async def start(self) -> None:
        await self.http.startup()
        await self.recorder.start()
        if self.settings.maintenance.enabled:
            await self.maintenance.start()
        logger.info(
            "runtime.started",
            rate_limit_strategy=self.settings.rate_limit.strategy,
            maintenance=self.settings.maintenance.enabled,
        )

    async def stop(self) -> None:
        await self.maintenance.stop()
        await self.recorder.stop()
        await self.tasks.drain()
        await self.http.shutdown()
        logger.info("runtime.stopped")
