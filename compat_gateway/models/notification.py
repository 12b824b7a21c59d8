"""Abuse notification data model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from compat_gateway.utils.datetime import utcnow


class NotificationType(str, Enum):
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    API_ABUSE = "api_abuse"


class NotificationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AbuseNotification(SQLModel, table=True):
    """Operator-facing notification raised by the abuse monitor."""

    __tablename__ = "abuse_notifications"

    id: int | None = Field(default=None, primary_key=True)
    type: str = Field(index=True)
    severity: str = Field(default=NotificationSeverity.WARNING.value)
    title: str
    message: str
    credential_id: int | None = Field(default=None, index=True)

    # "metadata" is reserved on declarative models
    details: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column("metadata", JSON, nullable=True, default=None),
    )

    is_read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
