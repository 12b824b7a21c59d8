"""Abuse monitor.

Runs after a request's usage record is written. Raises operator
notifications; never influences the response already sent.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Protocol

import structlog

from compat_gateway.models.notification import (
    AbuseNotification,
    NotificationSeverity,
    NotificationType,
)
from compat_gateway.stores.notifications import NotificationStore
from compat_gateway.stores.usage import UsageLedger
from compat_gateway.utils.datetime import utcnow

logger = structlog.get_logger()


class Notifier(Protocol):
    async def notify(self, notification: AbuseNotification) -> AbuseNotification: ...


class StoreNotifier:
    """Persist notifications and log them."""

    def __init__(self, store: NotificationStore) -> None:
        self._store = store

    async def notify(self, notification: AbuseNotification) -> AbuseNotification:
        saved = await self._store.create(notification)
        logger.warning(
            "abuse.notification",
            notification_id=saved.id,
            type=saved.type,
            severity=saved.severity,
            credential_id=saved.credential_id,
        )
        return saved


class AbuseMonitor:
    """Turn usage patterns into operator notifications."""

    def __init__(
        self,
        ledger: UsageLedger,
        notifier: Notifier,
        *,
        error_threshold: int = 50,
        window: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._ledger = ledger
        self._notifier = notifier
        self._error_threshold = error_threshold
        self._window = window
        self._clock = clock

    async def observe(
        self,
        credential_id: int | None,
        endpoint: str,
        *,
        status_code: int = 200,
        rate_limited: bool = False,
        context: dict[str, Any] | None = None,
    ) -> list[AbuseNotification]:
        """Inspect the credential's recent usage after one request.

        A rate-limited request yields a rate_limit_exceeded notification.
        Otherwise an error response checks the trailing window and yields
        api_abuse once the error count exceeds the threshold.
        """
        if credential_id is None:
            return []

        context = context or {}
        if rate_limited:
            notification = AbuseNotification(
                type=NotificationType.RATE_LIMIT_EXCEEDED.value,
                severity=NotificationSeverity.WARNING.value,
                title="Rate Limit Exceeded",
                message=(
                    f"Credential {context.get('label', credential_id)} exceeded its rate "
                    f"limit on {endpoint}"
                ),
                credential_id=credential_id,
                details={"endpoint": endpoint, **context},
            )
            return [await self._notifier.notify(notification)]

        if status_code < 400:
            return []

        since = self._clock() - self._window
        errors = await self._ledger.error_count_since(credential_id, since)
        if errors <= self._error_threshold:
            return []

        notification = AbuseNotification(
            type=NotificationType.API_ABUSE.value,
            severity=NotificationSeverity.ERROR.value,
            title="Potential API Abuse Detected",
            message=(
                f"Credential {context.get('label', credential_id)} produced {errors} "
                f"error responses in the last {int(self._window.total_seconds() // 60)} minutes"
            ),
            credential_id=credential_id,
            details={
                "endpoint": endpoint,
                "error_count": errors,
                "threshold": self._error_threshold,
                **context,
            },
        )
        return [await self._notifier.notify(notification)]
