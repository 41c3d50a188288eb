from __future__ import annotations

import json
import logging
import secrets
from datetime import timedelta
from typing import Any, Protocol

from .clock import Clock
from .utils import log_event, masked

LOGGER = logging.getLogger("sso.session")

SSO_USER_KEY = "sso_user"


async def _resolve(result: Any) -> Any:
    return await result if hasattr(result, "__await__") else result


class SessionStore(Protocol):
    async def load(self, session_id: str) -> dict[str, Any] | None: ...

    async def save(self, session_id: str, data: dict[str, Any]) -> None: ...


class SessionSerializer(Protocol):
    def dumps(self, data: dict[str, Any]) -> str: ...

    def loads(self, payload: str) -> dict[str, Any]: ...


class JSONSessionSerializer:
    def dumps(self, data: dict[str, Any]) -> str:
        return json.dumps(data, sort_keys=True)

    def loads(self, payload: str) -> dict[str, Any]:
        data = json.loads(payload)
        return data if isinstance(data, dict) else {}


class RedisSessionStore:
    """Redis-backed server session repository."""

    def __init__(
        self,
        redis: Any,
        *,
        ttl_seconds: int,
        namespace: str = "sso_session",
        serializer: SessionSerializer | None = None,
    ) -> None:
        self._redis = redis
        self._ttl_seconds = ttl_seconds
        self._namespace = namespace
        self._serializer = serializer or JSONSessionSerializer()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def _key(self, session_id: str) -> str:
        return f"{self._namespace}:{session_id}"

    async def load(self, session_id: str) -> dict[str, Any] | None:
        payload = await _resolve(self._redis.get(self._key(session_id)))
        if payload is None:
            return None
        data = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        return self._serializer.loads(data)

    async def save(self, session_id: str, data: dict[str, Any]) -> None:
        payload = self._serializer.dumps(data)
        await _resolve(self._redis.set(self._key(session_id), payload, ex=self._ttl_seconds))


class MemorySessionStore:
    """Process-local session store with clock-driven expiry."""

    def __init__(self, *, ttl_seconds: int, clock: Clock) -> None:
        self._ttl_seconds = ttl_seconds
        self.clock = clock
        self._items: dict[str, tuple[dict[str, Any], Any]] = {}

    def __len__(self) -> int:
        return len(self._items)

    async def load(self, session_id: str) -> dict[str, Any] | None:
        item = self._items.get(session_id)
        if item is None:
            return None
        data, expires_at = item
        if self.clock.now() >= expires_at:
            self._items.pop(session_id, None)
            return None
        return dict(data)

    async def save(self, session_id: str, data: dict[str, Any]) -> None:
        now = self.clock.now()
        expired = [key for key, (_, expires_at) in self._items.items() if now >= expires_at]
        for key in expired:
            del self._items[key]
        self._items[session_id] = (dict(data), now + timedelta(seconds=self._ttl_seconds))


class ServerSession:
    """Per-request handle on the user's real server session.

    A handle starts inactive. ``open`` activates it when the browser presented
    a live session id; ``start`` creates a fresh one and ``resume`` binds the
    handle to a session linked through the bridge.
    """

    def __init__(self, store: SessionStore) -> None:
        self._store = store
        self._id: str | None = None
        self._data: dict[str, Any] = {}
        self.started = False

    @classmethod
    async def open(cls, store: SessionStore, session_id: str | None) -> "ServerSession":
        session = cls(store)
        if session_id:
            data = await store.load(session_id)
            if data is not None:
                session._id = session_id
                session._data = data
        return session

    @property
    def is_active(self) -> bool:
        return self._id is not None

    def current_id(self) -> str | None:
        return self._id

    async def start(self) -> str:
        if self._id is not None:
            return self._id
        self._id = secrets.token_urlsafe(24)
        self._data = {}
        self.started = True
        await self._store.save(self._id, self._data)
        log_event(LOGGER, msg="SSO_SESSION_STARTED", sid=masked(self._id))
        return self._id

    async def resume(self, session_id: str) -> None:
        data = await self._store.load(session_id)
        self._id = session_id
        self._data = data or {}
        log_event(LOGGER, msg="SSO_SESSION_RESUMED", sid=masked(session_id), known=data is not None)

    def get(self, key: str) -> Any:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        if self._id is None:
            raise RuntimeError("session is not active")
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        await self._store.save(self._id, self._data)


__all__ = [
    "SSO_USER_KEY",
    "JSONSessionSerializer",
    "MemorySessionStore",
    "RedisSessionStore",
    "ServerSession",
    "SessionStore",
]
