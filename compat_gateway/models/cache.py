"""Lookup cache data model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from compat_gateway.utils.datetime import utcnow


class CacheEntry(SQLModel, table=True):
    """Cached result of an expensive upstream lookup."""

    __tablename__ = "cache_entries"

    key: str = Field(primary_key=True)
    kind: str = Field(index=True)

    # Any JSON-serializable value
    payload: Any = Field(default=None, sa_column=Column(JSON, nullable=True))

    cached_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime = Field(index=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        """An entry is stale from the instant expires_at is reached."""
        return (now or utcnow()) >= self.expires_at
