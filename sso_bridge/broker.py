"""SSO broker client.

A broker lives on a site the user visits. It never handles credentials; it
keeps an opaque token in a cookie, gets that token attached to the user's
server session and then talks to the server on the user's behalf.
"""

from __future__ import annotations

import logging
import re
import secrets
from typing import Any, Mapping

import httpx
from fastapi.responses import RedirectResponse

from .checksum import attach_checksum, session_id
from .config import BrokerSettings, ResponseFormat
from .cookies import CookieJar
from .errors import NotAttachedError, RemoteError, TransportError, UnexpectedContentTypeError
from .responders import CODE_NO_TOKEN, JSON_MEDIA_TYPE
from .utils import log_event, masked, sanitize_cookie_part

LOGGER = logging.getLogger("sso.broker")

DEFAULT_TOKEN_TTL_SECONDS = 7200

_UNSET: Any = object()

TOKEN_PATTERN = re.compile(r"\w+", re.ASCII)


class Broker:
    def __init__(
        self,
        server_url: str,
        broker_id: str,
        secret: str,
        *,
        cookies: CookieJar,
        http_client: httpx.AsyncClient,
        request_url: str | None = None,
        token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        timeout_seconds: float = 5.0,
        response_format: ResponseFormat = "plain",
    ) -> None:
        if not server_url:
            raise ValueError("SSO server URL not specified")
        if not broker_id:
            raise ValueError("SSO broker id not specified")
        if not secret:
            raise ValueError("SSO broker secret not specified")
        self.server_url = server_url
        self.broker_id = broker_id
        self._secret = secret
        self._cookies = cookies
        self._http = http_client
        self._request_url = request_url
        self._token_ttl_seconds = DEFAULT_TOKEN_TTL_SECONDS
        self.set_token_ttl(token_ttl_seconds)
        self._timeout = timeout_seconds
        self._envelope = response_format == "envelope"
        self._headers: dict[str, str] = {}
        self._user_info: Any = _UNSET
        self.token: str | None = self._read_token()

    @classmethod
    def from_settings(
        cls,
        settings: BrokerSettings,
        *,
        cookies: CookieJar,
        http_client: httpx.AsyncClient,
    ) -> "Broker":
        return cls(
            settings.server_url,
            settings.broker_id,
            settings.secret.get_secret_value(),
            cookies=cookies,
            http_client=http_client,
            request_url=settings.request_url,
            token_ttl_seconds=settings.token_ttl_seconds,
            timeout_seconds=settings.timeout_seconds,
            response_format=settings.response_format,
        )

    # token lifecycle

    @property
    def cookie_name(self) -> str:
        # several brokers may share one domain
        return f"sso_token_{sanitize_cookie_part(self.broker_id)}"

    @property
    def token_ttl_seconds(self) -> int:
        return self._token_ttl_seconds

    def _read_token(self) -> str | None:
        token = self._cookies.get(self.cookie_name)
        if token is not None and TOKEN_PATTERN.fullmatch(token) is None:
            # would never resolve on the server
            log_event(LOGGER, msg="SSO_TOKEN_DISCARDED", level=logging.WARNING, broker=self.broker_id)
            return None
        return token

    def set_token_ttl(self, seconds: int | None) -> None:
        if seconds and seconds > 0:
            self._token_ttl_seconds = int(seconds)

    def ensure_token(self) -> str:
        if self.token is not None:
            return self.token
        self.token = secrets.token_hex(16)
        self._cookies.set(self.cookie_name, self.token, max_age=self._token_ttl_seconds, path="/", httponly=True)
        log_event(LOGGER, msg="SSO_TOKEN_CREATED", broker=self.broker_id, token=masked(self.token))
        return self.token

    def clear_token(self) -> None:
        self._cookies.delete(self.cookie_name, path="/")
        self.token = None
        self._user_info = _UNSET

    def is_attached(self) -> bool:
        return self.token is not None

    @property
    def session_id(self) -> str | None:
        if self.token is None:
            return None
        return session_id(self.broker_id, self.token, self._secret)

    # attach

    def attach_url(self, **params: Any) -> str:
        token = self.ensure_token()
        query = {
            "command": "attach",
            "broker": self.broker_id,
            "token": token,
            "checksum": attach_checksum(self.broker_id, token, self._secret),
        }
        query.update({key: value for key, value in params.items() if value is not None})
        return str(httpx.URL(self.server_url).copy_merge_params(query))

    def attach(self, return_url: str | None = None) -> RedirectResponse | None:
        """Redirect the browser to the server unless a token already exists."""

        if self.is_attached():
            return None
        return RedirectResponse(self.attach_url(return_url=return_url), status_code=307)

    # requests

    def set_header(self, name: str, value: str) -> None:
        self._headers[name] = value

    def set_client_ip(self, ip: str) -> None:
        self.set_header("X-CLIENT-IP", ip)

    def set_user_agent(self, user_agent: str) -> None:
        self.set_header("X-USER-AGENT", user_agent)

    def request_url(self, command: str, params: Mapping[str, Any] | None = None) -> httpx.URL:
        query = dict(params or {})
        query["command"] = command
        query["sso_session"] = self.session_id
        return httpx.URL(self._request_url or self.server_url).copy_merge_params(query)

    async def call(
        self,
        command: str,
        method: str = "POST",
        data: Mapping[str, Any] | str | None = None,
    ) -> Any:
        """Run ``command`` on the server in the name of the attached user."""

        if not self.is_attached():
            raise NotAttachedError("No token")
        method = method.upper()
        query = data if data and method != "POST" and isinstance(data, Mapping) else None
        url = self.request_url(command, query)
        headers = {**self._headers, "Accept": JSON_MEDIA_TYPE}
        kwargs: dict[str, Any] = {}
        if method == "POST" and data:
            if isinstance(data, str):
                kwargs["content"] = data
                headers["Content-Type"] = "application/x-www-form-urlencoded"
            else:
                kwargs["data"] = dict(data)

        try:
            response = await self._http.request(method, url, headers=headers, timeout=self._timeout, **kwargs)
        except httpx.HTTPError as exc:
            log_event(
                LOGGER,
                msg="SSO_RPC_TRANSPORT_FAIL",
                level=logging.WARNING,
                broker=self.broker_id,
                command=command,
            )
            raise TransportError(f"Server request failed: {exc}") from exc
        return self._handle_response(command, response)

    def _handle_response(self, command: str, response: httpx.Response) -> Any:
        status = response.status_code
        if status == 204:
            return None
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if content_type != JSON_MEDIA_TYPE:
            raise UnexpectedContentTypeError(content_type, status=status)
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteError("Invalid JSON response", status=status) from exc

        if self._envelope and _envelope_code(payload) == CODE_NO_TOKEN:
            self.clear_token()
        if status == 403:
            self.clear_token()
            log_event(LOGGER, msg="SSO_RPC_NOT_ATTACHED", broker=self.broker_id, command=command)
            raise NotAttachedError(_error_message(payload, response.text), status=status)
        if status >= 400:
            log_event(
                LOGGER,
                msg="SSO_RPC_REMOTE_ERROR",
                level=logging.WARNING,
                broker=self.broker_id,
                command=command,
                status=status,
            )
            raise RemoteError(_error_message(payload, response.text), status=status)
        return payload

    async def user_info(self, params: Mapping[str, Any] | None = None) -> Any:
        if self._user_info is _UNSET:
            self._user_info = await self.call("userInfo", "GET", params)
        return self._user_info

    async def login(self, username: str, password: str) -> Any:
        self._user_info = await self.call("login", "POST", {"username": username, "password": password})
        return self._user_info

    async def logout(self) -> None:
        await self.call("logout", "POST")
        self._user_info = _UNSET


def _envelope_code(payload: Any) -> Any:
    if isinstance(payload, Mapping):
        status = payload.get("status")
        if isinstance(status, Mapping):
            return status.get("code")
    return None


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, Mapping) and payload.get("error"):
        return str(payload["error"])
    return fallback


__all__ = ["Broker", "DEFAULT_TOKEN_TTL_SECONDS"]
