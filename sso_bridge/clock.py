from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Callable
from zoneinfo import ZoneInfo


def _utc_now() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


@dataclass(slots=True)
class Clock:
    """Deterministic clock with injectable time source."""

    timezone: ZoneInfo
    _now_factory: Callable[[], _dt.datetime] = _utc_now

    def now(self) -> _dt.datetime:
        """Return an aware datetime using the configured timezone."""

        current = self._now_factory()
        if current.tzinfo is None:
            current = current.replace(tzinfo=_dt.timezone.utc)
        return current.astimezone(self.timezone)


def system_clock(timezone: str = "UTC") -> Clock:
    return Clock(timezone=ZoneInfo(timezone))


__all__ = ["Clock", "system_clock"]
