from __future__ import annotations

from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .bridge_cache import DEFAULT_BRIDGE_TTL_SECONDS

ResponseFormat = Literal["plain", "envelope"]
StorageBackend = Literal["redis", "memory"]


class ServerSettings(BaseSettings):
    """Settings for the central SSO server."""

    model_config = SettingsConfigDict(env_prefix="SSO_SERVER_", extra="forbid")

    bridge_ttl_seconds: int = Field(default=DEFAULT_BRIDGE_TTL_SECONDS, ge=1)
    bridge_namespace: str = Field(default="sso_bridge", min_length=1)
    session_cookie_name: str = Field(default="sso_server_session", min_length=1)
    session_ttl_seconds: int = Field(default=DEFAULT_BRIDGE_TTL_SECONDS, ge=1)
    session_namespace: str = Field(default="sso_session", min_length=1)
    storage: StorageBackend = Field(
        default="redis",
        description="Where bridge links and sessions live; memory suits a single process.",
    )
    redis_dsn: str = Field(default="redis://localhost:6379/0")
    response_format: ResponseFormat = "plain"
    fail_exception: bool = Field(
        default=False,
        description="Raise failures to the host application instead of rendering them.",
    )
    attach_requires_authentication: bool = Field(
        default=True,
        description="Reject attach when the browser has no authenticated session.",
    )
    timezone: str = Field(default="UTC", description="Zone of the clock driving in-memory expiry.")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value

    @classmethod
    def from_env(cls) -> "ServerSettings":
        return cls()  # type: ignore[call-arg]


class BrokerSettings(BaseSettings):
    """Settings for a broker talking to the SSO server."""

    model_config = SettingsConfigDict(env_prefix="SSO_BROKER_", extra="forbid")

    server_url: str
    broker_id: str
    secret: SecretStr
    request_url: str | None = None
    token_ttl_seconds: int = Field(default=7200, ge=1)
    timeout_seconds: float = Field(default=5.0, gt=0)
    response_format: ResponseFormat = "plain"

    @field_validator("server_url", "broker_id", mode="before")
    @classmethod
    def _require_text(cls, value: object) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("value must not be empty")
        return text

    @field_validator("secret", mode="before")
    @classmethod
    def _require_secret(cls, value: object) -> object:
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        if not str(value or "").strip():
            raise ValueError("SSO broker secret not specified")
        return value

    @classmethod
    def from_env(cls) -> "BrokerSettings":
        return cls()  # type: ignore[call-arg]


__all__ = ["BrokerSettings", "ResponseFormat", "ServerSettings"]
