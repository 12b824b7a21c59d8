"""Deny-list store."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from compat_gateway.db import SessionFactory
from compat_gateway.errors import PersistenceWriteError
from compat_gateway.models.deny import DenyEntry
from compat_gateway.utils.datetime import utcnow


class DenyListStore:
    """Persistence for deny entries.

    ``owner_credential_id=None`` addresses the global list.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    @staticmethod
    def _owner_filter(owner_credential_id: int | None):
        if owner_credential_id is None:
            return DenyEntry.owner_credential_id.is_(None)
        return DenyEntry.owner_credential_id == owner_credential_id

    async def find_active(
        self,
        target: str,
        owner_credential_id: int | None,
    ) -> DenyEntry | None:
        async with self._session() as session:
            result = await session.execute(
                select(DenyEntry)
                .where(
                    DenyEntry.target == target,
                    DenyEntry.is_active.is_(True),
                    self._owner_filter(owner_credential_id),
                )
                .order_by(DenyEntry.id)
            )
            return result.scalars().first()

    async def list_active(self, owner_credential_id: int | None) -> list[DenyEntry]:
        async with self._session() as session:
            result = await session.execute(
                select(DenyEntry)
                .where(
                    DenyEntry.is_active.is_(True),
                    self._owner_filter(owner_credential_id),
                )
                .order_by(DenyEntry.created_at.desc())
            )
            return list(result.scalars().all())

    async def add(self, entry: DenyEntry) -> DenyEntry:
        target = entry.target
        try:
            async with self._session() as session:
                session.add(entry)
                await session.flush()
                await session.refresh(entry)
        except SQLAlchemyError as e:
            raise PersistenceWriteError(
                "Failed to store deny entry", details={"target": target}
            ) from e
        return entry

    async def deactivate(self, entry_id: int) -> DenyEntry | None:
        async with self._session() as session:
            entry = await session.get(DenyEntry, entry_id)
            if entry is None:
                return None
            entry.is_active = False
            entry.removed_at = utcnow()
            session.add(entry)
            return entry
