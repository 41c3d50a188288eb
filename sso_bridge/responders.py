"""Response channels for server commands.

The attach command answers through whichever channel the caller can read:
a redirect back to the broker, a JSONP script call, a tracking pixel or plain
JSON. Bodies are shaped by a formatter strategy picked once at construction.
"""

from __future__ import annotations

import base64
import json
import re
from enum import Enum
from typing import Any, Protocol

import httpx
from fastapi.responses import JSONResponse, RedirectResponse, Response

from .config import ResponseFormat
from .models import SSORequest

CODE_OK = 1
CODE_ERROR = 0
CODE_NO_TOKEN = 100403
CODE_SESSION_EXPIRED = 16149

CODE_MESSAGES: dict[int, str] = {
    CODE_OK: "ok",
    CODE_ERROR: "%s",
    CODE_NO_TOKEN: "No token",
    CODE_SESSION_EXPIRED: "session expired",
}

PIXEL_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABAQ"
    "MAAAAl21bKAAAAA1BMVEUAAACnej3aAAAAAXRSTlMAQObYZg"
    "AAAApJREFUCNdjYAAAAAIAAeIhvDMAAAAASUVORK5CYII="
)

JSON_MEDIA_TYPE = "application/json"
JSONP_MEDIA_TYPE = "application/javascript"

CALLBACK_PATTERN = re.compile(r"[A-Za-z_$][\w$.]*", re.ASCII)


class Channel(str, Enum):
    REDIRECT = "redirect"
    JSONP = "jsonp"
    IMAGE = "image"
    JSON = "json"


def detect_channel(request: SSORequest) -> Channel | None:
    if request.param("return_url"):
        return Channel.REDIRECT
    if request.param("callback"):
        return Channel.JSONP
    accept = request.accept or ""
    if "image/" in accept:
        return Channel.IMAGE
    if JSON_MEDIA_TYPE in accept:
        return Channel.JSON
    return None


def valid_callback(callback: Any) -> bool:
    return isinstance(callback, str) and CALLBACK_PATTERN.fullmatch(callback) is not None


def parse_return_url(return_url: Any) -> httpx.URL | None:
    try:
        return httpx.URL(str(return_url))
    except httpx.InvalidURL:
        return None


class ResponseFormatter(Protocol):
    def success(self, data: Any, *, code: int | None = None) -> Any: ...

    def error(self, message: str, status: int) -> Any: ...


class PlainFormatter:
    def success(self, data: Any, *, code: int | None = None) -> Any:
        return data

    def error(self, message: str, status: int) -> Any:
        return {"error": message}


class EnvelopeFormatter:
    """Wraps every body in ``{"status": {...}, "data": ...}``."""

    def success(self, data: Any, *, code: int | None = None) -> Any:
        code = CODE_OK if code is None else code
        return {
            "status": {"code": code, "message": _message_for(code, "")},
            "data": data if data is not None else {},
        }

    def error(self, message: str, status: int) -> Any:
        code = CODE_NO_TOKEN if status == 403 else CODE_ERROR
        return {
            "status": {"code": code, "message": _message_for(code, message)},
            "data": {},
            "error": message,
        }


def _message_for(code: int, message: str) -> str:
    template = CODE_MESSAGES.get(code, "%s")
    return template % message if "%s" in template else template


def build_formatter(response_format: ResponseFormat) -> ResponseFormatter:
    if response_format == "envelope":
        return EnvelopeFormatter()
    return PlainFormatter()


def _jsonp(callback: str, payload: Any, status: int) -> Response:
    body = f"{callback}({json.dumps(payload)}, {status});"
    return Response(body, media_type=JSONP_MEDIA_TYPE)


def render_success(
    channel: Channel | None,
    request: SSORequest,
    formatter: ResponseFormatter,
    data: Any,
    *,
    code: int | None = None,
) -> Response:
    if channel is Channel.REDIRECT:
        return RedirectResponse(str(request.param("return_url")), status_code=307)
    if channel is Channel.IMAGE:
        return Response(PIXEL_PNG, media_type="image/png")
    payload = formatter.success(data, code=code)
    callback = request.param("callback")
    if channel is Channel.JSONP and valid_callback(callback):
        return _jsonp(callback, payload, 200)
    return JSONResponse(payload)


def render_failure(
    channel: Channel | None,
    request: SSORequest,
    formatter: ResponseFormatter,
    message: str,
    status: int,
) -> Response:
    # unusable callback or return url falls back to plain JSON
    callback = request.param("callback")
    if channel is Channel.JSONP and valid_callback(callback):
        return _jsonp(callback, formatter.error(message, status), status)
    return_url = parse_return_url(request.param("return_url"))
    if channel is Channel.REDIRECT and return_url is not None:
        url = return_url.copy_add_param("sso_error", message)
        return RedirectResponse(str(url), status_code=307)
    return JSONResponse(formatter.error(message, status), status_code=status)


__all__ = [
    "CODE_ERROR",
    "CODE_NO_TOKEN",
    "CODE_OK",
    "CODE_SESSION_EXPIRED",
    "Channel",
    "EnvelopeFormatter",
    "PIXEL_PNG",
    "PlainFormatter",
    "ResponseFormatter",
    "build_formatter",
    "detect_channel",
    "parse_return_url",
    "render_failure",
    "render_success",
    "valid_callback",
]
