from __future__ import annotations

import asyncio

import fakeredis

from sso_bridge.bridge_cache import MemoryBridgeCache, RedisBridgeCache
from sso_bridge.sessions import MemorySessionStore, RedisSessionStore


def test_memory_bridge_expires_after_ttl(sso_clock) -> None:
    async def _run() -> None:
        cache = MemoryBridgeCache(ttl_seconds=60, clock=sso_clock.clock)
        await cache.set("SSO-shop1-tok-abc", "real-session")
        sso_clock.advance(59)
        assert await cache.get("SSO-shop1-tok-abc") == "real-session"
        sso_clock.advance(1)
        assert await cache.get("SSO-shop1-tok-abc") is None
        assert len(cache) == 0

    asyncio.run(_run())


def test_memory_bridge_overwrite_replaces_link(sso_clock) -> None:
    async def _run() -> None:
        cache = MemoryBridgeCache(ttl_seconds=60, clock=sso_clock.clock)
        await cache.set("key", "first")
        await cache.set("key", "second", ttl=120)
        sso_clock.advance(90)
        assert await cache.get("key") == "second"
        assert len(cache) == 1

    asyncio.run(_run())


def test_memory_bridge_drops_expired_links_on_write(sso_clock) -> None:
    async def _run() -> None:
        cache = MemoryBridgeCache(ttl_seconds=60, clock=sso_clock.clock)
        for index in range(50):
            await cache.set(f"SSO-shop1-tok{index}-abc", "real-session")
        sso_clock.advance(30)
        await cache.set("SSO-shop1-late-abc", "real-session")
        assert len(cache) == 51

        sso_clock.advance(30)
        await cache.set("SSO-shop1-next-abc", "real-session")
        assert len(cache) == 2
        assert await cache.get("SSO-shop1-late-abc") == "real-session"

    asyncio.run(_run())


def test_memory_session_store_drops_expired_sessions_on_save(sso_clock) -> None:
    async def _run() -> None:
        store = MemorySessionStore(ttl_seconds=900, clock=sso_clock.clock)
        for index in range(10):
            await store.save(f"sid-{index}", {"sso_user": "alice"})
        assert len(store) == 10
        sso_clock.advance(900)
        await store.save("sid-new", {})
        assert len(store) == 1
        assert await store.load("sid-0") is None
        assert await store.load("sid-new") == {}

    asyncio.run(_run())

def test_redis_bridge_uses_namespace_and_ttl() -> None:
    async def _run() -> None:
        redis = fakeredis.FakeStrictRedis()
        cache = RedisBridgeCache(redis, ttl_seconds=36000, namespace="bridge-test")
        await cache.set("SSO-shop1-tok-abc", "real-session")
        assert redis.get("bridge-test:SSO-shop1-tok-abc") == b"real-session"
        assert 0 < redis.ttl("bridge-test:SSO-shop1-tok-abc") <= 36000
        assert await cache.get("SSO-shop1-tok-abc") == "real-session"
        assert await cache.get("SSO-shop1-other-abc") is None
        await cache.set("SSO-shop1-tok-abc", "relinked", ttl=10)
        assert await cache.get("SSO-shop1-tok-abc") == "relinked"
        assert redis.ttl("bridge-test:SSO-shop1-tok-abc") <= 10
        redis.flushdb()

    asyncio.run(_run())


def test_redis_session_store_round_trip() -> None:
    async def _run() -> None:
        redis = fakeredis.FakeStrictRedis()
        store = RedisSessionStore(redis, ttl_seconds=900, namespace="session-test")
        assert await store.load("missing") is None
        await store.save("sid-1", {"sso_user": "alice"})
        assert await store.load("sid-1") == {"sso_user": "alice"}
        assert 0 < redis.ttl("session-test:sid-1") <= 900
        redis.flushdb()

    asyncio.run(_run())
