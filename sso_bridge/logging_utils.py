from __future__ import annotations

import json
import logging
from contextvars import ContextVar

correlation_id_var: ContextVar[str] = ContextVar("sso_correlation_id", default="-")

_RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


def configure_logging(level: int = logging.INFO, *, logger_name: str = "sso") -> logging.Logger:
    handler = logging.StreamHandler()
    handler.setFormatter(DeterministicFormatter())
    root = logging.getLogger(logger_name)
    root.setLevel(level)
    root.handlers = [handler]
    return root


class DeterministicFormatter(logging.Formatter):
    """Render records as sorted JSON including ``log_event`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)


__all__ = ["configure_logging", "correlation_id_var", "DeterministicFormatter"]
