from __future__ import annotations

from typing import Any, Mapping, Protocol

from .models import AuthenticationResult, BrokerIdentity


class SSOBackend(Protocol):
    """Capabilities the embedding application supplies to the server."""

    async def authenticate(
        self,
        username: str,
        password: str,
        params: Mapping[str, Any],
    ) -> AuthenticationResult: ...

    async def get_broker_info(self, broker_id: str) -> BrokerIdentity | Mapping[str, Any] | None: ...

    async def get_user_info(self, username: str) -> Mapping[str, Any] | None: ...


__all__ = ["SSOBackend"]
