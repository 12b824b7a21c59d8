"""Periodic maintenance."""

from compat_gateway.services.maintenance.base import MaintenanceResult, MaintenanceTask
from compat_gateway.services.maintenance.scheduler import MaintenanceScheduler
from compat_gateway.services.maintenance.tasks import (
    ExpiredCacheTask,
    RateWindowPruneTask,
    UsageRetentionTask,
)

__all__ = [
    "ExpiredCacheTask",
    "MaintenanceResult",
    "MaintenanceScheduler",
    "MaintenanceTask",
    "RateWindowPruneTask",
    "UsageRetentionTask",
]
