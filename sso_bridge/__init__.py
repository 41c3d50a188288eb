"""Session-linking single sign-on for brokers sharing one central server."""

from .bridge_cache import MemoryBridgeCache, RedisBridgeCache
from .broker import Broker
from .checksum import attach_checksum, derive, parse_session_id, session_id
from .config import BrokerSettings, ServerSettings
from .cookies import CookieJar
from .errors import (
    AuthorizationError,
    InternalInvariantError,
    NotAttachedError,
    ProtocolViolation,
    RemoteError,
    SSOError,
    TransportError,
    UnexpectedContentTypeError,
    UnknownBrokerError,
    ValidationError,
)
from .models import AuthenticationResult, BrokerIdentity, SSORequest
from .server import SSOServer
from .sessions import MemorySessionStore, RedisSessionStore, ServerSession

__all__ = [
    "AuthenticationResult",
    "AuthorizationError",
    "Broker",
    "BrokerIdentity",
    "BrokerSettings",
    "CookieJar",
    "InternalInvariantError",
    "MemoryBridgeCache",
    "MemorySessionStore",
    "NotAttachedError",
    "ProtocolViolation",
    "RedisBridgeCache",
    "RedisSessionStore",
    "RemoteError",
    "SSOError",
    "SSORequest",
    "SSOServer",
    "ServerSession",
    "ServerSettings",
    "TransportError",
    "UnexpectedContentTypeError",
    "UnknownBrokerError",
    "ValidationError",
    "attach_checksum",
    "derive",
    "parse_session_id",
    "session_id",
]
