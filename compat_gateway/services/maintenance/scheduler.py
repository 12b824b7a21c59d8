"""Maintenance scheduler - runs cleanup tasks periodically."""

from __future__ import annotations

import asyncio

import structlog

from compat_gateway.config import MaintenanceConfig
from compat_gateway.services.maintenance.base import MaintenanceResult, MaintenanceTask

logger = structlog.get_logger()


class MaintenanceScheduler:
    """Scheduler for maintenance tasks.

    - Runs tasks serially in the given order
    - A failing task is logged and reported, the others still run
    - ``run_once`` and the background loop never overlap

    Usage:
        scheduler = MaintenanceScheduler(tasks=[...], config=settings.maintenance)
        await scheduler.run_once()
        await scheduler.start()
        await scheduler.stop()
    """

    def __init__(self, tasks: list[MaintenanceTask], config: MaintenanceConfig) -> None:
        self._tasks = tasks
        self._config = config
        self._log = logger.bind(service="maintenance_scheduler")

        self._running = False
        self._task: asyncio.Task | None = None
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> list[MaintenanceResult]:
        """Execute one cycle, waiting for any cycle already in progress."""
        async with self._run_lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> list[MaintenanceResult]:
        self._log.info("maintenance.cycle.start")
        results = [await self._run_task(task) for task in self._tasks]
        self._log.info(
            "maintenance.cycle.complete",
            total_cleaned=sum(r.cleaned_count for r in results),
            total_errors=sum(len(r.errors) for r in results),
        )
        return results

    async def _run_task(self, task: MaintenanceTask) -> MaintenanceResult:
        try:
            result = await task.run()
            result.task_name = task.name
            self._log.info(
                "maintenance.task.complete",
                task=task.name,
                cleaned=result.cleaned_count,
                errors=len(result.errors),
            )
            return result
        except Exception as e:
            self._log.exception("maintenance.task.failed", task=task.name, error=str(e))
            result = MaintenanceResult(task_name=task.name)
            result.add_error(f"Task failed: {e}")
            return result

    async def start(self) -> None:
        """Start the background loop (interval from config)."""
        if self._running:
            self._log.warning("maintenance.scheduler.already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._background_loop())
        self._log.info(
            "maintenance.scheduler.started",
            interval_seconds=self._config.interval_seconds,
        )

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._log.info("maintenance.scheduler.stopped")

    async def _background_loop(self) -> None:
        if not self._config.run_on_startup:
            await asyncio.sleep(self._config.interval_seconds)
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                self._log.exception("maintenance.scheduler.cycle_error", error=str(e))

            await asyncio.sleep(self._config.interval_seconds)
