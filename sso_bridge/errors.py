from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, eq=False)
class SSOError(Exception):
    message: str
    status: int = 500
    reason: str = "internal"

    def __str__(self) -> str:  # pragma: no cover - representational
        return f"{self.status}: {self.message}"


class ValidationError(SSOError):
    """Missing or malformed request input."""

    def __init__(self, message: str, *, reason: str = "invalid_request") -> None:
        super().__init__(message, 400, reason)


class AuthorizationError(SSOError):
    """Bridge unresolved or checksum rejected."""

    def __init__(self, message: str, *, reason: str = "not_attached") -> None:
        super().__init__(message, 403, reason)


class ProtocolViolation(SSOError):
    """The request already runs inside a different session than the bridge links to."""

    def __init__(self, message: str, *, reason: str = "session_confusion") -> None:
        super().__init__(message, 400, reason)


class InternalInvariantError(SSOError):
    def __init__(self, message: str, *, reason: str = "invariant") -> None:
        super().__init__(message, 500, reason)


class UnknownBrokerError(SSOError):
    def __init__(self, broker_id: str) -> None:
        super().__init__(f"Unknown broker '{broker_id}'", 400, "unknown_broker")
        self.broker_id = broker_id


class BrokerError(SSOError):
    """Failures raised on the broker side of an RPC."""


class TransportError(BrokerError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 0, "transport")


class UnexpectedContentTypeError(BrokerError):
    def __init__(self, content_type: str, *, status: int = 0) -> None:
        super().__init__(
            f"Expected application/json response, got {content_type or 'nothing'}",
            status,
            "content_type",
        )
        self.content_type = content_type


class RemoteError(BrokerError):
    def __init__(self, message: str, *, status: int) -> None:
        super().__init__(message, status, "remote")


class NotAttachedError(BrokerError):
    def __init__(self, message: str = "No token", *, status: int = 403) -> None:
        super().__init__(message, status, "not_attached")


__all__ = [
    "SSOError",
    "ValidationError",
    "AuthorizationError",
    "ProtocolViolation",
    "InternalInvariantError",
    "UnknownBrokerError",
    "BrokerError",
    "TransportError",
    "UnexpectedContentTypeError",
    "RemoteError",
    "NotAttachedError",
]
