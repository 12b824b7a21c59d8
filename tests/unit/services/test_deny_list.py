"""Unit tests for DenyListService scoping."""

from __future__ import annotations

import pytest

from compat_gateway.errors import ConflictError, NotFoundError
from compat_gateway.models.deny import DenyScope
from compat_gateway.services.deny_list import DenyListService

IMEI = "356938035643809"


@pytest.fixture
def deny_list(deny_store) -> DenyListService:
    return DenyListService(deny_store)


async def test_local_entry_only_blocks_owner(deny_list):
    await deny_list.add(IMEI, "lost", credential_id=1)

    entry = await deny_list.is_denied(IMEI, credential_id=1)

    assert entry.scope is DenyScope.LOCAL
    assert entry.reason == "lost"
    assert await deny_list.is_denied(IMEI, credential_id=2) is None
    assert await deny_list.is_denied(IMEI) is None


async def test_global_entry_blocks_everyone(deny_list):
    await deny_list.add(IMEI, "reported stolen")

    for credential_id in (None, 1, 2):
        entry = await deny_list.is_denied(IMEI, credential_id=credential_id)
        assert entry.scope is DenyScope.GLOBAL


async def test_global_wins_over_local(deny_list):
    await deny_list.add(IMEI, "mine", credential_id=1)
    await deny_list.add(IMEI, "fraud")

    entry = await deny_list.is_denied(IMEI, credential_id=1)

    assert entry.scope is DenyScope.GLOBAL
    assert entry.reason == "fraud"


async def test_targets_are_normalized(deny_list):
    await deny_list.add("35-693803 5643809", "lost")

    assert await deny_list.is_globally_denied(IMEI) is not None


async def test_duplicate_in_same_scope_conflicts(deny_list):
    await deny_list.add(IMEI, "lost", credential_id=1)
    await deny_list.add(IMEI, "also mine", credential_id=2)

    with pytest.raises(ConflictError):
        await deny_list.add(IMEI, "again", credential_id=1)


async def test_remove(deny_list):
    await deny_list.add(IMEI, "lost", credential_id=1)

    removed = await deny_list.remove(IMEI, credential_id=1)

    assert removed.is_active is False
    assert await deny_list.is_locally_denied(IMEI, 1) is None
    with pytest.raises(NotFoundError):
        await deny_list.remove(IMEI, credential_id=1)


async def test_remove_does_not_cross_scopes(deny_list):
    await deny_list.add(IMEI, "fraud")

    with pytest.raises(NotFoundError):
        await deny_list.remove(IMEI, credential_id=1)

    assert await deny_list.is_globally_denied(IMEI) is not None


async def test_list_entries_by_scope(deny_list):
    await deny_list.add(IMEI, "fraud")
    await deny_list.add("490154203237518", "lost", credential_id=1)

    assert [e.target for e in await deny_list.list_entries()] == [IMEI]
    assert [e.target for e in await deny_list.list_entries(credential_id=1)] == [
        "490154203237518"
    ]
