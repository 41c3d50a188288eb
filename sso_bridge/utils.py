from __future__ import annotations

import hashlib
import logging
import re
from typing import Any, Mapping

LOGGER = logging.getLogger("sso")

_COOKIE_UNSAFE = re.compile(r"[_\W]+")


def hash_identifier(*values: str) -> str:
    digest = hashlib.blake2b(digest_size=12)
    for value in values:
        digest.update(value.encode("utf-8", errors="ignore"))
    return digest.hexdigest()


def masked(value: str | None) -> str:
    if not value:
        return "*"
    return hash_identifier(value)[:8]


def sanitize_cookie_part(value: str) -> str:
    return _COOKIE_UNSAFE.sub("_", value.lower())


def first_value(params: Mapping[str, Any], key: str) -> str | None:
    """Return a non-empty string parameter or ``None``."""

    value = params.get(key)
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
        if value is None:
            return None
    text = str(value)
    return text or None


def log_event(logger: logging.Logger, *, msg: str, level: int = logging.INFO, **extra: object) -> None:
    logger.log(level, msg, extra=extra)


__all__ = ["hash_identifier", "masked", "sanitize_cookie_part", "first_value", "log_event"]
