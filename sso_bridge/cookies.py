from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from starlette.responses import Response


@dataclass(frozen=True, slots=True)
class CookieWrite:
    name: str
    value: str | None
    max_age: int
    path: str = "/"
    httponly: bool = True

    @property
    def expires(self) -> bool:
        return self.value is None


class CookieJar:
    """Request-scoped cookie capability.

    Reads come from the cookies the browser sent; writes are applied locally
    right away and queued so the caller can replay them onto its response.
    """

    def __init__(self, incoming: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(incoming or {})
        self._pending: list[CookieWrite] = []

    def get(self, name: str) -> str | None:
        return self._values.get(name)

    def set(self, name: str, value: str, *, max_age: int, path: str = "/", httponly: bool = True) -> None:
        self._values[name] = value
        self._pending.append(CookieWrite(name, value, max_age, path, httponly))

    def delete(self, name: str, *, path: str = "/") -> None:
        self._values.pop(name, None)
        self._pending.append(CookieWrite(name, None, 0, path))

    @property
    def pending(self) -> tuple[CookieWrite, ...]:
        return tuple(self._pending)

    def apply(self, response: Response) -> Response:
        for write in self._pending:
            if write.expires:
                response.delete_cookie(write.name, path=write.path)
            else:
                response.set_cookie(
                    write.name,
                    write.value or "",
                    max_age=write.max_age,
                    path=write.path,
                    httponly=write.httponly,
                )
        self._pending.clear()
        return response


__all__ = ["CookieJar", "CookieWrite"]
