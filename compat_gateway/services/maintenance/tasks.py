"""Maintenance tasks."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from compat_gateway.services.maintenance.base import MaintenanceResult, MaintenanceTask
from compat_gateway.stores.cache import CacheStore
from compat_gateway.stores.usage import UsageLedger
from compat_gateway.utils.datetime import utcnow


class ExpiredCacheTask(MaintenanceTask):
    """Delete cache entries past their expiry."""

    def __init__(self, store: CacheStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._clock = clock

    @property
    def name(self) -> str:
        return "expired_cache"

    async def run(self) -> MaintenanceResult:
        result = MaintenanceResult(task_name=self.name)
        result.cleaned_count = await self._store.purge_expired(self._clock())
        return result


class UsageRetentionTask(MaintenanceTask):
    """Delete usage records older than the retention period."""

    def __init__(
        self,
        ledger: UsageLedger,
        *,
        retention: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._ledger = ledger
        self._retention = retention
        self._clock = clock

    @property
    def name(self) -> str:
        return "usage_retention"

    async def run(self) -> MaintenanceResult:
        result = MaintenanceResult(task_name=self.name)
        result.cleaned_count = await self._ledger.purge_before(self._clock() - self._retention)
        return result


class RateWindowPruneTask(MaintenanceTask):
    """Drop idle in-memory rate windows."""

    def __init__(self, *limiters) -> None:
        self._limiters = limiters

    @property
    def name(self) -> str:
        return "rate_window_prune"

    async def run(self) -> MaintenanceResult:
        result = MaintenanceResult(task_name=self.name)
        for limiter in self._limiters:
            try:
                result.cleaned_count += limiter.prune()
            except Exception as e:
                result.add_error(f"{type(limiter).__name__}: {e}")
        return result
