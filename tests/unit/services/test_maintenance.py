"""Unit tests for maintenance tasks and the scheduler.

Includes edge cases: stop without start, raising tasks, double start.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from compat_gateway.config import MaintenanceConfig, RateLimitTier
from compat_gateway.models.usage import UsageRecord
from compat_gateway.services.maintenance import (
    ExpiredCacheTask,
    MaintenanceResult,
    MaintenanceScheduler,
    MaintenanceTask,
    RateWindowPruneTask,
    UsageRetentionTask,
)
from compat_gateway.services.rate_limit import AddressRateLimiter, SlidingWindowRateLimiter


class FakeTask(MaintenanceTask):
    """Fake maintenance task for testing."""

    def __init__(self, name: str, cleaned: int = 0, errors: list[str] | None = None):
        self._name = name
        self._cleaned = cleaned
        self._errors = errors or []
        self.run_count = 0

    @property
    def name(self) -> str:
        return self._name

    async def run(self) -> MaintenanceResult:
        self.run_count += 1
        result = MaintenanceResult(cleaned_count=self._cleaned)
        for error in self._errors:
            result.add_error(error)
        return result


class RaisingTask(MaintenanceTask):
    """Maintenance task that raises an exception."""

    def __init__(self, name: str, error: Exception):
        self._name = name
        self._error = error
        self.run_count = 0

    @property
    def name(self) -> str:
        return self._name

    async def run(self) -> MaintenanceResult:
        self.run_count += 1
        raise self._error


@pytest.fixture
def maintenance_config() -> MaintenanceConfig:
    return MaintenanceConfig(enabled=True, run_on_startup=True, interval_seconds=1)


class TestMaintenanceScheduler:
    async def test_run_once_runs_tasks_in_order(self, maintenance_config):
        first = FakeTask("first", cleaned=2)
        second = FakeTask("second", cleaned=3, errors=["partial"])
        scheduler = MaintenanceScheduler([first, second], maintenance_config)

        results = await scheduler.run_once()

        assert [r.task_name for r in results] == ["first", "second"]
        assert [r.cleaned_count for r in results] == [2, 3]
        assert results[0].success is True
        assert results[1].success is False
        assert results[1].to_dict() == {"task": "second", "cleaned": 3, "errors": ["partial"]}

    async def test_raising_task_does_not_stop_cycle(self, maintenance_config):
        raising = RaisingTask("broken", RuntimeError("boom"))
        after = FakeTask("after", cleaned=1)
        scheduler = MaintenanceScheduler([raising, after], maintenance_config)

        results = await scheduler.run_once()

        assert results[0].errors == ["Task failed: boom"]
        assert results[1].cleaned_count == 1
        assert after.run_count == 1

    async def test_stop_without_start(self, maintenance_config):
        scheduler = MaintenanceScheduler([], maintenance_config)

        await scheduler.stop()

        assert scheduler.is_running is False

    async def test_background_loop_runs_on_startup(self, maintenance_config):
        task = FakeTask("loop")
        scheduler = MaintenanceScheduler([task], maintenance_config)

        await scheduler.start()
        for _ in range(50):
            if task.run_count:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        assert task.run_count >= 1
        assert scheduler.is_running is False

    async def test_start_twice_is_noop(self, maintenance_config):
        config = maintenance_config.model_copy(update={"run_on_startup": False})
        scheduler = MaintenanceScheduler([], config)

        await scheduler.start()
        await scheduler.start()
        await scheduler.stop()

        assert scheduler.is_running is False


class TestMaintenanceTasks:
    async def test_expired_cache_task(self, cache_store, clock):
        hour = timedelta(hours=1)
        await cache_store.upsert("old", "isp", {}, ttl=hour, now=clock.now - 2 * hour)
        await cache_store.upsert("fresh", "isp", {}, ttl=hour, now=clock.now)

        result = await ExpiredCacheTask(cache_store, clock=clock).run()

        assert result.cleaned_count == 1
        assert await cache_store.count() == 1

    async def test_usage_retention_task(self, usage_ledger, clock):
        await usage_ledger.record_many(
            [
                UsageRecord(
                    endpoint="/v1/check",
                    status_code=200,
                    timestamp=clock.now - timedelta(days=91),
                ),
                UsageRecord(
                    endpoint="/v1/check",
                    status_code=200,
                    timestamp=clock.now - timedelta(days=1),
                ),
            ]
        )
        task = UsageRetentionTask(usage_ledger, retention=timedelta(days=90), clock=clock)

        result = await task.run()

        assert result.cleaned_count == 1

    async def test_rate_window_prune_task(self, clock):
        tier = RateLimitTier(window_seconds=60, max_requests=5)
        sliding = SlidingWindowRateLimiter(clock=clock)
        address = AddressRateLimiter(tier, clock=clock)
        await sliding.check_and_count(1, "lookup", tier)
        address.check_and_count("203.0.113.7")
        clock.advance(minutes=5)

        result = await RateWindowPruneTask(sliding, address).run()

        assert result.cleaned_count == 2
        assert result.success
