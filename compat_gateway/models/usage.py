"""Usage ledger data model.

One row per request attempt, including rejected ones.
"""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from compat_gateway.utils.datetime import utcnow


class UsageRecord(SQLModel, table=True):
    """Append-only usage record."""

    __tablename__ = "usage_records"

    id: int | None = Field(default=None, primary_key=True)

    # Null for anonymous requests
    credential_id: int | None = Field(default=None, index=True)
    origin: str = Field(default="unknown", index=True)

    endpoint: str
    endpoint_class: str = Field(default="lookup")
    method: str = Field(default="POST")
    status_code: int
    latency_ms: int = Field(default=0)
    rate_limit_exceeded: bool = Field(default=False)

    request_bytes: int = Field(default=0)
    response_bytes: int = Field(default=0)
    user_agent: str | None = Field(default=None)

    timestamp: datetime = Field(default_factory=utcnow, index=True)
