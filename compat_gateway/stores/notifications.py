"""Abuse notification store."""

from __future__ import annotations

from sqlalchemy import func
from sqlmodel import select

from compat_gateway.db import SessionFactory
from compat_gateway.models.notification import AbuseNotification


class NotificationStore:
    """Persistence for operator notifications."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def create(self, notification: AbuseNotification) -> AbuseNotification:
        async with self._session() as session:
            session.add(notification)
            await session.flush()
            await session.refresh(notification)
        return notification

    async def list_recent(
        self,
        *,
        unread_only: bool = False,
        limit: int = 100,
    ) -> list[AbuseNotification]:
        query = select(AbuseNotification)
        if unread_only:
            query = query.where(AbuseNotification.is_read.is_(False))
        query = query.order_by(AbuseNotification.created_at.desc()).limit(limit)
        async with self._session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def unread_count(self) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(AbuseNotification)
                .where(AbuseNotification.is_read.is_(False))
            )
            return int(result.scalar_one())

    async def mark_read(self, notification_id: int) -> bool:
        async with self._session() as session:
            notification = await session.get(AbuseNotification, notification_id)
            if notification is None:
                return False
            notification.is_read = True
            session.add(notification)
            return True
