"""Session id derivation shared by brokers and the server.

Both sides recompute the same values from ``(purpose, broker_id, token,
secret)``; a matching checksum proves knowledge of the broker secret without
ever sending it over the wire.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from typing import Literal

Purpose = Literal["attach", "session"]

ATTACH: Purpose = "attach"
SESSION: Purpose = "session"

SESSION_ID_PATTERN = re.compile(r"SSO-(\w+)-(\w+)-([a-z0-9]+)", re.ASCII)


def _digest(purpose: str, token: str, secret: str) -> str:
    return hashlib.sha256(f"{purpose}{token}{secret}".encode("utf-8")).hexdigest()


def derive(purpose: Purpose, broker_id: str, token: str, secret: str) -> str:
    """Return the attach checksum or the full session id for ``purpose``."""

    if purpose == ATTACH:
        return _digest(ATTACH, token, secret)
    if purpose == SESSION:
        return f"SSO-{broker_id}-{token}-{_digest(SESSION, token, secret)}"
    raise ValueError(f"unknown purpose: {purpose!r}")


def attach_checksum(broker_id: str, token: str, secret: str) -> str:
    return derive(ATTACH, broker_id, token, secret)


def session_id(broker_id: str, token: str, secret: str) -> str:
    return derive(SESSION, broker_id, token, secret)


def parse_session_id(value: str) -> tuple[str, str, str] | None:
    match = SESSION_ID_PATTERN.fullmatch(value)
    if match is None:
        return None
    broker_id, token, checksum = match.groups()
    return broker_id, token, checksum


def checksums_match(expected: str | None, given: str | None) -> bool:
    if not expected or not given:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), given.encode("utf-8"))


__all__ = [
    "ATTACH",
    "SESSION",
    "SESSION_ID_PATTERN",
    "Purpose",
    "attach_checksum",
    "checksums_match",
    "derive",
    "parse_session_id",
    "session_id",
]
