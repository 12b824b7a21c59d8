"""Datetime helpers.

Provides UTC timestamp helpers without using deprecated ``datetime.utcnow()``.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return current UTC time as a naive datetime.

    Timestamps are stored as naive UTC datetimes in every table.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def isoformat_z(value: datetime) -> str:
    """Render a naive UTC datetime as ISO-8601 with a ``Z`` suffix."""
    return value.isoformat(timespec="milliseconds") + "Z"
