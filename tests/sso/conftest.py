from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Mapping
from zoneinfo import ZoneInfo

import pytest

from sso_bridge.bridge_cache import MemoryBridgeCache
from sso_bridge.clock import Clock
from sso_bridge.config import ServerSettings
from sso_bridge.metrics import SSOMetrics
from sso_bridge.models import SSORequest
from sso_bridge.server import SSOServer
from sso_bridge.sessions import SSO_USER_KEY, MemorySessionStore, ServerSession
from tests.mock.sso_backend import MockSSOBackend

BRIDGE_TTL_SECONDS = 36000


@pytest.fixture(name="sso_clock")
def sso_clock_fixture() -> SimpleNamespace:
    holder = [datetime(2024, 3, 21, 9, 0, tzinfo=timezone.utc)]

    def now() -> datetime:
        return holder[0]

    clock = Clock(timezone=ZoneInfo("UTC"), _now_factory=now)

    def advance(seconds: int) -> None:
        holder[0] = holder[0] + timedelta(seconds=seconds)

    return SimpleNamespace(clock=clock, advance=advance)


@pytest.fixture
def sso_backend() -> MockSSOBackend:
    return MockSSOBackend()


@pytest.fixture
def bridge_cache(sso_clock: SimpleNamespace) -> MemoryBridgeCache:
    return MemoryBridgeCache(ttl_seconds=BRIDGE_TTL_SECONDS, clock=sso_clock.clock)


@pytest.fixture
def session_store(sso_clock: SimpleNamespace) -> MemorySessionStore:
    return MemorySessionStore(ttl_seconds=BRIDGE_TTL_SECONDS, clock=sso_clock.clock)


@pytest.fixture
def sso_metrics() -> SSOMetrics:
    return SSOMetrics.build()


@pytest.fixture
def server_settings() -> ServerSettings:
    return ServerSettings(bridge_ttl_seconds=BRIDGE_TTL_SECONDS)


@pytest.fixture
def sso_server(sso_backend, bridge_cache, server_settings, sso_metrics) -> SSOServer:
    return SSOServer(sso_backend, bridge=bridge_cache, settings=server_settings, metrics=sso_metrics)


@pytest.fixture
def browser(session_store: MemorySessionStore) -> SimpleNamespace:
    """Builds requests the way the HTTP adapter does."""

    async def login(username: str, session_id: str = "browser-session") -> str:
        await session_store.save(session_id, {SSO_USER_KEY: username})
        return session_id

    async def request(
        params: Mapping[str, Any],
        *,
        session_id: str | None = None,
        accept: str = "",
    ) -> SSORequest:
        session = await ServerSession.open(session_store, session_id)
        return SSORequest(params=dict(params), session=session, accept=accept, correlation_id="rid-test")

    return SimpleNamespace(login=login, request=request, store=session_store)
