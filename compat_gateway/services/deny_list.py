"""Deny-list service.

Two scopes share one table: global entries (no owner) block every
caller, local entries block only the credential that added them.
Lookups check the global list first.
"""

from __future__ import annotations

import structlog

from compat_gateway.errors import ConflictError, NotFoundError
from compat_gateway.models.deny import DenyEntry, DenyScope
from compat_gateway.stores.deny import DenyListStore
from compat_gateway.utils.imei import normalize_imei

logger = structlog.get_logger()


class DenyListService:
    """Scoped deny-list lookups and management."""

    def __init__(self, store: DenyListStore) -> None:
        self._store = store

    async def is_denied(
        self,
        target: str,
        credential_id: int | None = None,
    ) -> DenyEntry | None:
        """Return the matching entry, global before local, or None."""
        target = normalize_imei(target)
        entry = await self._store.find_active(target, None)
        if entry is not None:
            return entry
        if credential_id is None:
            return None
        return await self._store.find_active(target, credential_id)

    async def is_globally_denied(self, target: str) -> DenyEntry | None:
        return await self._store.find_active(normalize_imei(target), None)

    async def is_locally_denied(self, target: str, credential_id: int) -> DenyEntry | None:
        return await self._store.find_active(normalize_imei(target), credential_id)

    async def add(
        self,
        target: str,
        reason: str,
        *,
        credential_id: int | None = None,
        added_by: str = "operator",
    ) -> DenyEntry:
        """Add ``target`` to one scope.

        Raises:
            ConflictError: already listed in that scope
        """
        target = normalize_imei(target)
        existing = await self._store.find_active(target, credential_id)
        if existing is not None:
            raise ConflictError(
                f"{target} is already on the {existing.scope.value} deny list",
                details={"id": existing.id, "scope": existing.scope.value},
            )

        entry = await self._store.add(
            DenyEntry(
                target=target,
                reason=reason,
                owner_credential_id=credential_id,
                added_by=added_by,
            )
        )
        logger.info(
            "deny_list.added",
            entry_id=entry.id,
            scope=entry.scope.value,
            credential_id=credential_id,
        )
        return entry

    async def remove(self, target: str, *, credential_id: int | None = None) -> DenyEntry:
        """Remove ``target`` from one scope.

        Raises:
            NotFoundError: not listed in that scope
        """
        target = normalize_imei(target)
        existing = await self._store.find_active(target, credential_id)
        if existing is None:
            scope = DenyScope.GLOBAL if credential_id is None else DenyScope.LOCAL
            raise NotFoundError(f"{target} is not on the {scope.value} deny list")

        entry = await self._store.deactivate(existing.id)
        logger.info(
            "deny_list.removed",
            entry_id=existing.id,
            scope=existing.scope.value,
            credential_id=credential_id,
        )
        return entry or existing

    async def list_entries(self, *, credential_id: int | None = None) -> list[DenyEntry]:
        return await self._store.list_active(credential_id)
