"""Deny-list data model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from compat_gateway.utils.datetime import utcnow


class DenyScope(str, Enum):
    """Where a deny entry applies."""

    GLOBAL = "global"  # every caller
    LOCAL = "local"  # one credential


class DenyEntry(SQLModel, table=True):
    """Blocked target (device IMEI).

    Removal deactivates the row so the history stays queryable.
    """

    __tablename__ = "deny_entries"

    id: int | None = Field(default=None, primary_key=True)
    target: str = Field(index=True)
    reason: str = Field(default="")

    # Null owner means global scope
    owner_credential_id: int | None = Field(default=None, index=True)
    added_by: str = Field(default="operator")

    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    removed_at: datetime | None = Field(default=None)

    @property
    def scope(self) -> DenyScope:
        if self.owner_credential_id is None:
            return DenyScope.GLOBAL
        return DenyScope.LOCAL
