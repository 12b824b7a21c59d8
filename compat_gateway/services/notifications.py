"""Operator notification queries."""

from __future__ import annotations

from compat_gateway.errors import NotFoundError
from compat_gateway.models.notification import AbuseNotification
from compat_gateway.stores.notifications import NotificationStore


class NotificationService:
    def __init__(self, store: NotificationStore) -> None:
        self._store = store

    async def list_notifications(
        self,
        *,
        unread_only: bool = False,
        limit: int = 100,
    ) -> list[AbuseNotification]:
        return await self._store.list_recent(unread_only=unread_only, limit=limit)

    async def unread_count(self) -> int:
        return await self._store.unread_count()

    async def mark_read(self, notification_id: int) -> None:
        if not await self._store.mark_read(notification_id):
            raise NotFoundError(f"Notification not found: {notification_id}")
