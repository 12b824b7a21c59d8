"""Credential data model.

Stores hashed API credentials.
Plaintext secrets are never stored, only SHA-256 hashes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from compat_gateway.utils.datetime import utcnow


class CredentialTier(str, Enum):
    """Rate limit tier assigned to a credential."""

    STANDARD = "standard"
    ELEVATED = "elevated"
    PREMIUM = "premium"


class Credential(SQLModel, table=True):
    """API credential.

    The key_prefix (first 12 chars of the secret) is kept for
    identification in logs and operator views.
    """

    __tablename__ = "credentials"

    id: int | None = Field(default=None, primary_key=True)
    key_hash: str = Field(index=True, unique=True)  # SHA-256 hex digest
    key_prefix: str = Field()
    label: str = Field()
    email: str | None = Field(default=None, index=True)
    tier: str = Field(default=CredentialTier.STANDARD.value)

    is_active: bool = Field(default=True)
    use_count: int = Field(default=0)

    created_at: datetime = Field(default_factory=utcnow)
    last_used_at: datetime | None = Field(default=None)
    deactivated_at: datetime | None = Field(default=None)
