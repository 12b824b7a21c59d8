"""Persistence stores.

Each store owns its own short-lived sessions obtained from a
``SessionFactory``.
"""

from compat_gateway.stores.cache import CacheStore
from compat_gateway.stores.credentials import CredentialStore
from compat_gateway.stores.deny import DenyListStore
from compat_gateway.stores.notifications import NotificationStore
from compat_gateway.stores.usage import UsageLedger, UsageStats

__all__ = [
    "CacheStore",
    "CredentialStore",
    "DenyListStore",
    "NotificationStore",
    "UsageLedger",
    "UsageStats",
]
