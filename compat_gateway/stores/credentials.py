"""Credential store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from compat_gateway.db import SessionFactory
from compat_gateway.errors import PersistenceWriteError
from compat_gateway.models.credential import Credential
from compat_gateway.utils.datetime import utcnow


class CredentialStore:
    """Persistence for API credentials."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def create(self, credential: Credential) -> Credential:
        label = credential.label
        try:
            async with self._session() as session:
                session.add(credential)
                await session.flush()
                await session.refresh(credential)
        except SQLAlchemyError as e:
            raise PersistenceWriteError(
                "Failed to store credential", details={"label": label}
            ) from e
        return credential

    async def get(self, credential_id: int) -> Credential | None:
        async with self._session() as session:
            return await session.get(Credential, credential_id)

    async def get_by_hash(self, key_hash: str) -> Credential | None:
        async with self._session() as session:
            result = await session.execute(
                select(Credential).where(Credential.key_hash == key_hash)
            )
            return result.scalars().first()

    async def list_all(self, *, active_only: bool = False) -> list[Credential]:
        query = select(Credential).order_by(Credential.id)
        if active_only:
            query = query.where(Credential.is_active.is_(True))
        async with self._session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def count(self, *, email: str | None = None) -> int:
        query = select(func.count()).select_from(Credential)
        if email is not None:
            query = query.where(Credential.email == email)
        async with self._session() as session:
            result = await session.execute(query)
            return int(result.scalar_one())

    async def touch(self, credential_id: int, at: datetime | None = None) -> None:
        """Bump use_count and last_used_at in a single UPDATE."""
        async with self._session() as session:
            await session.execute(
                update(Credential)
                .where(Credential.id == credential_id)
                .values(
                    use_count=Credential.use_count + 1,
                    last_used_at=at or utcnow(),
                )
            )

    async def deactivate(self, credential_id: int) -> Credential | None:
        async with self._session() as session:
            credential = await session.get(Credential, credential_id)
            if credential is None:
                return None
            if credential.is_active:
                credential.is_active = False
                credential.deactivated_at = utcnow()
                session.add(credential)
            return credential
