"""Shared fixtures.

A throwaway SQLite database, the stores on top of it, and an HTTP client
for a fully wired app whose upstream lookups are fakes.
"""

from __future__ import annotations

import httpx
import pytest

from compat_gateway.config import Settings
from compat_gateway.db import build_session_factory, create_engine, create_tables
from compat_gateway.main import create_app
from compat_gateway.runtime import GatewayRuntime
from compat_gateway.stores import (
    CacheStore,
    CredentialStore,
    DenyListStore,
    NotificationStore,
    UsageLedger,
)
from tests.fakes import ADMIN_TOKEN, ManualClock, fake_collaborators


@pytest.fixture
async def session_factory(tmp_path):
    """File-backed SQLite so every session sees the same database."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def credential_store(session_factory) -> CredentialStore:
    return CredentialStore(session_factory)


@pytest.fixture
def usage_ledger(session_factory) -> UsageLedger:
    return UsageLedger(session_factory)


@pytest.fixture
def cache_store(session_factory) -> CacheStore:
    return CacheStore(session_factory)


@pytest.fixture
def deny_store(session_factory) -> DenyListStore:
    return DenyListStore(session_factory)


@pytest.fixture
def notification_store(session_factory) -> NotificationStore:
    return NotificationStore(session_factory)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database={"url": f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"},
        logging={"level": "warning", "json_format": False},
        security={"admin_token": ADMIN_TOKEN},
        rate_limit={
            "tiers": {"standard": {"window_seconds": 3600, "max_requests": 5}},
            "address": {"window_seconds": 3600, "max_requests": 3},
        },
        maintenance={"enabled": False},
    )


@pytest.fixture
async def runtime(settings, session_factory):
    """Fully wired runtime over the test database and fake upstreams."""
    runtime = GatewayRuntime.build(settings, session_factory, collaborators=fake_collaborators())
    await runtime.start()
    yield runtime
    await runtime.stop()


@pytest.fixture
async def client(settings, runtime):
    app = create_app(settings)
    app.state.runtime = runtime
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
