"""Usage recorder.

Decouples usage telemetry from the request path: the gateway submits an
event and returns immediately; background workers write it to the usage
ledger and then run the abuse monitor. The queue is bounded, and events
that do not fit are dropped and counted.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog

from compat_gateway.models.usage import UsageRecord
from compat_gateway.services.abuse import AbuseMonitor
from compat_gateway.stores.usage import UsageLedger

logger = structlog.get_logger()


@dataclass
class UsageEvent:
    """One request attempt plus what the abuse monitor needs to know."""

    record: UsageRecord
    label: str | None = None
    context: dict[str, Any] = field(default_factory=dict)


class UsageRecorder:
    """Bounded queue feeding background ledger writers.

    Usage:
        recorder = UsageRecorder(ledger, monitor, queue_size=10_000)
        await recorder.start()
        recorder.submit(UsageEvent(record=...))
        await recorder.stop()
    """

    def __init__(
        self,
        ledger: UsageLedger,
        monitor: AbuseMonitor | None = None,
        *,
        queue_size: int = 10_000,
        workers: int = 1,
        batch_size: int = 100,
    ) -> None:
        self._ledger = ledger
        self._monitor = monitor
        self._queue: asyncio.Queue[UsageEvent] = asyncio.Queue(maxsize=queue_size)
        self._worker_count = max(1, workers)
        self._batch_size = max(1, batch_size)
        self._workers: list[asyncio.Task] = []
        self._log = logger.bind(service="usage_recorder")

        self.dropped = 0
        self.written = 0
        self.failed = 0

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, event: UsageEvent) -> bool:
        """Enqueue without waiting. Returns False if the event was dropped."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            self._log.warning(
                "usage.dropped",
                endpoint=event.record.endpoint,
                dropped_total=self.dropped,
            )
            return False
        return True

    async def start(self) -> None:
        if self._workers:
            self._log.warning("usage.recorder.already_running")
            return
        self._workers = [
            asyncio.create_task(self._worker(), name=f"usage-recorder-{i}")
            for i in range(self._worker_count)
        ]
        self._log.info(
            "usage.recorder.started",
            workers=self._worker_count,
            queue_size=self._queue.maxsize,
        )

    async def flush(self) -> None:
        """Wait until every queued event has been processed."""
        await self._queue.join()

    async def stop(self, *, drain_timeout: float = 5.0) -> None:
        """Drain what is queued (bounded by ``drain_timeout``), then stop."""
        if not self._workers:
            return
        self._log.info("usage.recorder.stopping", pending=self.pending)
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except TimeoutError:
            self._log.warning("usage.recorder.drain_timeout", pending=self.pending)

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._log.info(
            "usage.recorder.stopped",
            written=self.written,
            dropped=self.dropped,
            failed=self.failed,
        )

    async def _worker(self) -> None:
        while True:
            batch = [await self._queue.get()]
            while len(batch) < self._batch_size:
                try:
                    batch.append(self._queue.get_nowait())
                except asyncio.QueueEmpty:
                    break
            try:
                await self._process(batch)
            finally:
                for _ in batch:
                    self._queue.task_done()

    async def _process(self, batch: list[UsageEvent]) -> None:
        try:
            await self._ledger.record_many([event.record for event in batch])
            self.written += len(batch)
        except Exception as e:
            self.failed += len(batch)
            self._log.warning("usage.write_failed", count=len(batch), error=str(e))

        if self._monitor is None:
            return

        for event in batch:
            record = event.record
            try:
                await self._monitor.observe(
                    record.credential_id,
                    record.endpoint,
                    status_code=record.status_code,
                    rate_limited=record.rate_limit_exceeded,
                    context={"label": event.label, **event.context}
                    if event.label
                    else event.context,
                )
            except Exception as e:
                self._log.warning(
                    "abuse.observe_failed",
                    credential_id=record.credential_id,
                    error=str(e),
                )
