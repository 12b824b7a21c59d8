"""Usage ledger store.

Append-only request attempt records, queried by the rate limiter, the
abuse monitor and the usage statistics endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, func
from sqlmodel import select

from compat_gateway.db import SessionFactory
from compat_gateway.models.usage import UsageRecord


@dataclass(frozen=True)
class UsageStats:
    """Aggregated usage for one credential."""

    total_requests: int
    requests_last_hour: int
    requests_last_day: int
    rate_limit_violations: int
    average_response_time_ms: float


class UsageLedger:
    """Persistence for usage records."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def record(self, record: UsageRecord) -> None:
        await self.record_many([record])

    async def record_many(self, records: list[UsageRecord]) -> None:
        if not records:
            return
        async with self._session() as session:
            session.add_all(records)

    @staticmethod
    def _window_filters(
        credential_id: int,
        since: datetime,
        endpoint_class: str | None,
    ) -> list:
        filters = [
            UsageRecord.credential_id == credential_id,
            UsageRecord.timestamp > since,
        ]
        if endpoint_class is not None:
            filters.append(UsageRecord.endpoint_class == endpoint_class)
        return filters

    async def count_since(
        self,
        credential_id: int,
        since: datetime,
        *,
        endpoint_class: str | None = None,
    ) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(UsageRecord)
                .where(*self._window_filters(credential_id, since, endpoint_class))
            )
            return int(result.scalar_one())

    async def oldest_since(
        self,
        credential_id: int,
        since: datetime,
        *,
        endpoint_class: str | None = None,
    ) -> datetime | None:
        async with self._session() as session:
            result = await session.execute(
                select(func.min(UsageRecord.timestamp)).where(
                    *self._window_filters(credential_id, since, endpoint_class)
                )
            )
            return result.scalar_one_or_none()

    async def timestamps_since(
        self,
        credential_id: int,
        since: datetime,
        *,
        endpoint_class: str | None = None,
        limit: int | None = None,
    ) -> list[datetime]:
        """Newest ``limit`` timestamps in the window, oldest first."""
        query = (
            select(UsageRecord.timestamp)
            .where(*self._window_filters(credential_id, since, endpoint_class))
            .order_by(UsageRecord.timestamp.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        async with self._session() as session:
            result = await session.execute(query)
            return sorted(result.scalars().all())

    async def error_count_since(
        self,
        credential_id: int,
        since: datetime,
        *,
        min_status: int = 400,
    ) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(UsageRecord)
                .where(
                    UsageRecord.credential_id == credential_id,
                    UsageRecord.timestamp > since,
                    UsageRecord.status_code >= min_status,
                )
            )
            return int(result.scalar_one())

    async def recent(self, credential_id: int, *, limit: int = 50) -> list[UsageRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(UsageRecord)
                .where(UsageRecord.credential_id == credential_id)
                .order_by(UsageRecord.timestamp.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def stats(self, credential_id: int, now: datetime) -> UsageStats:
        async with self._session() as session:
            result = await session.execute(
                select(
                    func.count(),
                    func.avg(UsageRecord.latency_ms),
                ).where(UsageRecord.credential_id == credential_id)
            )
            total, avg_latency = result.one()

            async def _count(*filters) -> int:
                res = await session.execute(
                    select(func.count())
                    .select_from(UsageRecord)
                    .where(UsageRecord.credential_id == credential_id, *filters)
                )
                return int(res.scalar_one())

            last_hour = await _count(UsageRecord.timestamp > now - timedelta(hours=1))
            last_day = await _count(UsageRecord.timestamp > now - timedelta(days=1))
            violations = await _count(UsageRecord.rate_limit_exceeded.is_(True))

        return UsageStats(
            total_requests=int(total or 0),
            requests_last_hour=last_hour,
            requests_last_day=last_day,
            rate_limit_violations=violations,
            average_response_time_ms=round(float(avg_latency or 0.0), 2),
        )

    async def purge_before(self, cutoff: datetime) -> int:
        async with self._session() as session:
            result = await session.execute(
                delete(UsageRecord).where(UsageRecord.timestamp < cutoff)
            )
            return result.rowcount or 0
