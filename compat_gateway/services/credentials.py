"""Credential service.

Handles secret generation, hashing, issuance and authentication.
Secrets look like ``imei_<random>_<epoch-ms>``; only their SHA-256 hash
is persisted.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
import time
from dataclasses import dataclass

import structlog

from compat_gateway.errors import (
    InvalidCredentialError,
    MalformedCredentialError,
    MissingCredentialError,
    NotFoundError,
    ValidationError,
)
from compat_gateway.models.credential import Credential, CredentialTier
from compat_gateway.services.tasks import BackgroundTaskSet
from compat_gateway.stores.credentials import CredentialStore
from compat_gateway.utils.datetime import utcnow

logger = structlog.get_logger()

_KEY_DISPLAY_LEN = 12  # chars to store as key_prefix for identification
_MAX_SECRET_LEN = 128
_SECRET_BODY = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    credential_id: int
    label: str
    tier: str
    key_prefix: str


@dataclass(frozen=True)
class IssuedCredential:
    """A freshly issued credential. ``secret`` is shown exactly once."""

    secret: str
    credential: Credential


def hash_secret(secret: str) -> str:
    """Hash a plaintext secret using SHA-256."""
    return hashlib.sha256(secret.encode()).hexdigest()


def generate_secret(prefix: str) -> str:
    """Generate a new secret: prefix + 24 url-safe chars + issue time in ms."""
    return f"{prefix}{secrets.token_urlsafe(18)}_{int(time.time() * 1000)}"


def parse_authorization(header: str | None) -> str | None:
    """Extract the secret from an Authorization header.

    Both ``Bearer <secret>`` and a bare secret are accepted.
    """
    if header is None:
        return None
    value = header.strip()
    if value[:7].lower() == "bearer ":
        value = value[7:].strip()
    return value or None


class CredentialService:
    """Issue and revoke credentials."""

    def __init__(self, store: CredentialStore, *, prefix: str = "imei_") -> None:
        self._store = store
        self._prefix = prefix

    async def issue(
        self,
        *,
        label: str | None = None,
        email: str | None = None,
        tier: str = CredentialTier.STANDARD.value,
    ) -> IssuedCredential:
        try:
            tier = CredentialTier(tier).value
        except ValueError:
            raise ValidationError(f"Unknown tier: {tier}") from None

        if not label:
            label = f"Key{await self._store.count(email=email) + 1}"

        secret = generate_secret(self._prefix)
        credential = Credential(
            key_hash=hash_secret(secret),
            key_prefix=secret[:_KEY_DISPLAY_LEN],
            label=label,
            email=email,
            tier=tier,
        )
        credential = await self._store.create(credential)
        logger.info(
            "credential.issued",
            credential_id=credential.id,
            key_prefix=credential.key_prefix,
            tier=tier,
        )
        return IssuedCredential(secret=secret, credential=credential)

    async def deactivate(self, credential_id: int) -> Credential:
        credential = await self._store.deactivate(credential_id)
        if credential is None:
            raise NotFoundError(f"Credential not found: {credential_id}")
        logger.info("credential.deactivated", credential_id=credential_id)
        return credential

    async def get(self, credential_id: int) -> Credential:
        credential = await self._store.get(credential_id)
        if credential is None:
            raise NotFoundError(f"Credential not found: {credential_id}")
        return credential


class Authenticator:
    """Resolve a presented secret to a Principal."""

    def __init__(
        self,
        store: CredentialStore,
        *,
        prefix: str = "imei_",
        tasks: BackgroundTaskSet | None = None,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._tasks = tasks or BackgroundTaskSet()

    def is_well_formed(self, secret: str) -> bool:
        if not secret.startswith(self._prefix):
            return False
        if len(secret) > _MAX_SECRET_LEN:
            return False
        body = secret[len(self._prefix):]
        return bool(body) and _SECRET_BODY.match(body) is not None

    async def authenticate(self, secret: str | None) -> Principal:
        """Authenticate a secret.

        Raises:
            MissingCredentialError: nothing presented
            MalformedCredentialError: wrong format, no lookup performed
            InvalidCredentialError: unknown or inactive
        """
        if not secret:
            raise MissingCredentialError()
        if not self.is_well_formed(secret):
            raise MalformedCredentialError()

        key_hash = hash_secret(secret)
        credential = await self._store.get_by_hash(key_hash)
        if credential is None or not hmac.compare_digest(credential.key_hash, key_hash):
            raise InvalidCredentialError()
        if not credential.is_active:
            raise InvalidCredentialError()

        # Usage stamp runs after the response path continues
        self._tasks.spawn(
            self._store.touch(credential.id, utcnow()),
            name=f"credential.touch.{credential.id}",
        )

        return Principal(
            credential_id=credential.id,
            label=credential.label,
            tier=credential.tier,
            key_prefix=credential.key_prefix,
        )
