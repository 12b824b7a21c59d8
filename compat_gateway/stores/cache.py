"""Cache entry store."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from compat_gateway.db import SessionFactory
from compat_gateway.models.cache import CacheEntry


class CacheStore:
    """Persistence for cache entries keyed by derived cache key."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def get(self, key: str, now: datetime) -> CacheEntry | None:
        """Return the entry for ``key`` unless it has expired."""
        async with self._session() as session:
            entry = await session.get(CacheEntry, key)
        if entry is None or entry.is_expired(now):
            return None
        return entry

    async def upsert(
        self,
        key: str,
        kind: str,
        payload: Any,
        *,
        ttl: timedelta,
        now: datetime,
    ) -> CacheEntry:
        """Insert or replace the entry for ``key``. Last write wins."""
        try:
            async with self._session() as session:
                return await self._write(session, key, kind, payload, ttl, now)
        except IntegrityError:
            # Concurrent writer inserted the same key first
            async with self._session() as session:
                return await self._write(session, key, kind, payload, ttl, now)

    @staticmethod
    async def _write(
        session: AsyncSession,
        key: str,
        kind: str,
        payload: Any,
        ttl: timedelta,
        now: datetime,
    ) -> CacheEntry:
        entry = await session.get(CacheEntry, key)
        if entry is None:
            entry = CacheEntry(key=key, kind=kind, expires_at=now + ttl)
        entry.kind = kind
        entry.payload = payload
        entry.cached_at = now
        entry.expires_at = now + ttl
        session.add(entry)
        await session.flush()
        return entry

    async def delete(self, key: str) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
            return bool(result.rowcount)

    async def purge_expired(self, now: datetime) -> int:
        async with self._session() as session:
            result = await session.execute(
                delete(CacheEntry).where(CacheEntry.expires_at <= now)
            )
            return result.rowcount or 0

    async def count(self, kind: str | None = None) -> int:
        query = select(func.count()).select_from(CacheEntry)
        if kind is not None:
            query = query.where(CacheEntry.kind == kind)
        async with self._session() as session:
            result = await session.execute(query)
            return int(result.scalar_one())
