"""SQLModel data models."""

from compat_gateway.models.cache import CacheEntry
from compat_gateway.models.credential import Credential, CredentialTier
from compat_gateway.models.deny import DenyEntry, DenyScope
from compat_gateway.models.notification import (
    AbuseNotification,
    NotificationSeverity,
    NotificationType,
)
from compat_gateway.models.usage import UsageRecord

__all__ = [
    "AbuseNotification",
    "CacheEntry",
    "Credential",
    "CredentialTier",
    "DenyEntry",
    "DenyScope",
    "NotificationSeverity",
    "NotificationType",
    "UsageRecord",
]
