"""Unit tests for the credential, deny-list and notification stores."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from compat_gateway.errors import PersistenceWriteError
from compat_gateway.models.credential import Credential
from compat_gateway.models.deny import DenyEntry, DenyScope
from compat_gateway.models.notification import AbuseNotification
from compat_gateway.stores.credentials import CredentialStore
from compat_gateway.stores.deny import DenyListStore


def _credential(key_hash: str, **kwargs) -> Credential:
    kwargs.setdefault("label", "Key1")
    return Credential(key_hash=key_hash, key_prefix="imei_abcdefg", **kwargs)


@asynccontextmanager
async def _failing_session():
    raise OperationalError("INSERT", {}, Exception("database is locked"))
    yield


class TestCredentialStore:
    async def test_create_and_lookup_by_hash(self, credential_store):
        created = await credential_store.create(_credential("h1"))

        found = await credential_store.get_by_hash("h1")

        assert created.id is not None
        assert found.id == created.id
        assert await credential_store.get_by_hash("missing") is None

    async def test_touch_increments_use_count(self, credential_store):
        created = await credential_store.create(_credential("h1"))
        at = datetime(2025, 1, 1, 12, 0, 0)

        await credential_store.touch(created.id, at)
        await credential_store.touch(created.id, at)

        refreshed = await credential_store.get(created.id)
        assert refreshed.use_count == 2
        assert refreshed.last_used_at == at

    async def test_count_by_email(self, credential_store):
        await credential_store.create(_credential("h1", email="a@example.com"))
        await credential_store.create(_credential("h2", email="a@example.com"))
        await credential_store.create(_credential("h3", email="b@example.com"))

        assert await credential_store.count(email="a@example.com") == 2
        assert await credential_store.count() == 3

    async def test_deactivate(self, credential_store):
        created = await credential_store.create(_credential("h1"))

        deactivated = await credential_store.deactivate(created.id)

        assert deactivated.is_active is False
        assert deactivated.deactivated_at is not None
        assert await credential_store.list_all(active_only=True) == []
        assert await credential_store.deactivate(999) is None


class TestDenyListStore:
    async def test_scopes_are_separate(self, deny_store):
        await deny_store.add(DenyEntry(target="490154203237518", reason="stolen"))
        await deny_store.add(
            DenyEntry(target="356938035643809", reason="mine", owner_credential_id=7)
        )

        global_entry = await deny_store.find_active("490154203237518", None)
        local_entry = await deny_store.find_active("356938035643809", 7)

        assert global_entry.scope is DenyScope.GLOBAL
        assert local_entry.scope is DenyScope.LOCAL
        assert await deny_store.find_active("356938035643809", None) is None
        assert await deny_store.find_active("356938035643809", 8) is None

    async def test_deactivated_entry_is_not_found(self, deny_store):
        entry = await deny_store.add(DenyEntry(target="490154203237518", reason="stolen"))

        await deny_store.deactivate(entry.id)

        assert await deny_store.find_active("490154203237518", None) is None
        assert await deny_store.list_active(None) == []


class TestNotificationStore:
    async def test_list_and_mark_read(self, notification_store):
        first = await notification_store.create(
            AbuseNotification(
                type="rate_limit_exceeded",
                title="Rate Limit Exceeded",
                message="m",
                credential_id=1,
                details={"limit": 100},
            )
        )
        await notification_store.create(
            AbuseNotification(type="api_abuse", title="Abuse", message="m", credential_id=1)
        )

        assert await notification_store.unread_count() == 2
        assert await notification_store.mark_read(first.id) is True
        assert await notification_store.mark_read(999) is False

        unread = await notification_store.list_recent(unread_only=True)
        assert [n.type for n in unread] == ["api_abuse"]
        everything = await notification_store.list_recent()
        assert len(everything) == 2
        assert next(n for n in everything if n.id == first.id).details == {"limit": 100}


class TestWriteFailures:
    async def test_credential_write_failure(self):
        store = CredentialStore(_failing_session)

        with pytest.raises(PersistenceWriteError) as exc_info:
            await store.create(_credential("h1", label="CI"))

        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "persistence_write_failed"
        assert exc_info.value.details == {"label": "CI"}

    async def test_deny_entry_write_failure(self):
        store = DenyListStore(_failing_session)

        with pytest.raises(PersistenceWriteError) as exc_info:
            await store.add(DenyEntry(target="356938035643809", reason="stolen"))

        assert exc_info.value.details == {"target": "356938035643809"}
