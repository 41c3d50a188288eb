from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Protocol

from .clock import Clock
from .utils import log_event, masked

LOGGER = logging.getLogger("sso.bridge")

DEFAULT_BRIDGE_TTL_SECONDS = 10 * 3600


class BridgeCache(Protocol):
    """Shared store mapping a broker session id to the real session id."""

    ttl_seconds: int

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> None: ...


class RedisBridgeCache:
    """Redis-backed bridge; expiry is delegated to ``SET ... EX``."""

    def __init__(
        self,
        redis: Any,
        *,
        ttl_seconds: int = DEFAULT_BRIDGE_TTL_SECONDS,
        namespace: str = "sso_bridge",
    ) -> None:
        self._redis = redis
        self.ttl_seconds = ttl_seconds
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def get(self, key: str) -> str | None:
        result = self._redis.get(self._key(key))
        payload = await result if hasattr(result, "__await__") else result
        if payload is None:
            return None
        return payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else str(payload)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        ttl = ttl or self.ttl_seconds
        result = self._redis.set(self._key(key), value, ex=ttl)
        if hasattr(result, "__await__"):
            await result
        log_event(LOGGER, msg="SSO_BRIDGE_LINKED", bridge=masked(key), sid=masked(value), ttl=ttl)


class MemoryBridgeCache:
    def __init__(self, *, ttl_seconds: int = DEFAULT_BRIDGE_TTL_SECONDS, clock: Clock) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, tuple[str, datetime]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock.now() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        ttl = ttl or self.ttl_seconds
        now = self.clock.now()
        self._purge(now)
        self._entries[key] = (value, now + timedelta(seconds=ttl))
        log_event(LOGGER, msg="SSO_BRIDGE_LINKED", bridge=masked(key), sid=masked(value), ttl=ttl)

    def _purge(self, now: datetime) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]


__all__ = ["BridgeCache", "DEFAULT_BRIDGE_TTL_SECONDS", "MemoryBridgeCache", "RedisBridgeCache"]
