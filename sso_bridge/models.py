from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from .utils import first_value

if TYPE_CHECKING:
    from .responders import Channel
    from .sessions import ServerSession


@dataclass(frozen=True, slots=True)
class BrokerIdentity:
    """Registered broker; the secret is shared out-of-band."""

    broker_id: str
    secret: str
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, broker_id: str, info: "BrokerIdentity | Mapping[str, Any] | None") -> "BrokerIdentity | None":
        if info is None or isinstance(info, BrokerIdentity):
            return info
        secret = info.get("secret")
        if not secret:
            return None
        extra = {key: value for key, value in info.items() if key != "secret"}
        return cls(broker_id=broker_id, secret=str(secret), extra=extra)


@dataclass(frozen=True, slots=True)
class AuthenticationResult:
    ok: bool
    message: str = ""

    @classmethod
    def success(cls) -> "AuthenticationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, message: str) -> "AuthenticationResult":
        return cls(ok=False, message=message)


@dataclass(slots=True)
class SSORequest:
    """Everything a server command needs from the inbound HTTP request."""

    params: Mapping[str, Any]
    session: "ServerSession"
    accept: str = ""
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    broker_id: str | None = None
    channel: "Channel | None" = None

    def param(self, key: str) -> str | None:
        return first_value(self.params, key)

    @property
    def command(self) -> str | None:
        return self.param("command")


__all__ = ["AuthenticationResult", "BrokerIdentity", "SSORequest"]
