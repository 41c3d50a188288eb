"""Central SSO server.

The server owns the real user sessions. Brokers never see them; instead each
broker token is linked to a session through the bridge cache during the
``attach`` handshake, and every later broker call presents the derived
``sso_session`` id which is resolved back to that session here.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, Mapping

from fastapi.responses import Response

from .backend import SSOBackend
from .bridge_cache import BridgeCache
from .checksum import ATTACH, SESSION, checksums_match, derive, parse_session_id, session_id
from .config import ServerSettings
from .errors import (
    AuthorizationError,
    InternalInvariantError,
    ProtocolViolation,
    SSOError,
    UnknownBrokerError,
    ValidationError,
)
from .metrics import SSOMetrics
from .models import BrokerIdentity, SSORequest
from .responders import (
    CODE_SESSION_EXPIRED,
    Channel,
    ResponseFormatter,
    build_formatter,
    detect_channel,
    parse_return_url,
    render_failure,
    render_success,
    valid_callback,
)
from .sessions import SSO_USER_KEY
from .utils import log_event, masked

LOGGER = logging.getLogger("sso.server")

CommandHandler = Callable[["SSOServer", SSORequest], Awaitable[Response]]


class SSOServer:
    def __init__(
        self,
        backend: SSOBackend,
        *,
        bridge: BridgeCache,
        settings: ServerSettings | None = None,
        metrics: SSOMetrics | None = None,
        formatter: ResponseFormatter | None = None,
    ) -> None:
        self._backend = backend
        self._bridge = bridge
        self._settings = settings or ServerSettings()
        self._metrics = metrics or SSOMetrics.build()
        self._formatter = formatter or build_formatter(self._settings.response_format)
        self._commands: dict[str, Callable[[SSORequest], Awaitable[Response]]] = {
            "attach": self.attach,
            "userInfo": self.user_info,
            "login": self.login,
            "logout": self.logout,
        }

    @property
    def settings(self) -> ServerSettings:
        return self._settings

    @property
    def metrics(self) -> SSOMetrics:
        return self._metrics

    @property
    def bridge(self) -> BridgeCache:
        return self._bridge

    def register_command(self, name: str, handler: CommandHandler) -> None:
        """Expose an application command next to the built-in ones."""

        if name in self._commands:
            raise ValueError(f"command already registered: {name}")
        self._commands[name] = functools.partial(handler, self)

    async def dispatch(self, request: SSORequest) -> Response:
        command = request.command or ""
        handler = self._commands.get(command)
        label = command if handler is not None else "unknown"
        with self._metrics.command_duration_seconds.labels(command=label).time():
            try:
                if handler is None:
                    raise ValidationError("Unknown command", reason="unknown_command")
                return await handler(request)
            except SSOError as exc:
                return self.fail(request, exc)

    def fail(self, request: SSORequest, error: SSOError) -> Response:
        """Single exit for every failed command."""

        self._metrics.failures_total.labels(reason=error.reason, status=str(error.status)).inc()
        if isinstance(error, ProtocolViolation):
            level = logging.ERROR
        elif error.status >= 500:
            level = logging.WARNING
        else:
            level = logging.INFO
        log_event(
            LOGGER,
            msg="SSO_COMMAND_FAIL",
            level=level,
            rid=request.correlation_id,
            command=request.command,
            status=error.status,
            reason=error.reason,
        )
        if self._settings.fail_exception:
            raise error
        return render_failure(request.channel, request, self._formatter, error.message, error.status)

    async def broker_identity(self, broker_id: str) -> BrokerIdentity:
        info = await self._backend.get_broker_info(broker_id)
        identity = BrokerIdentity.coerce(broker_id, info)
        if identity is None:
            raise UnknownBrokerError(broker_id)
        return identity

    async def _identity_or_none(self, broker_id: str) -> BrokerIdentity | None:
        try:
            return await self.broker_identity(broker_id)
        except UnknownBrokerError:
            return None

    async def attach(self, request: SSORequest) -> Response:
        """Link the broker token to the browser's session."""

        request.channel = detect_channel(request)
        if request.channel is None:
            raise ValidationError("No return url specified", reason="no_channel")
        if request.channel is Channel.REDIRECT and parse_return_url(request.param("return_url")) is None:
            request.channel = Channel.JSON
            raise ValidationError("Invalid return url", reason="invalid_return_url")
        if request.channel is Channel.JSONP and not valid_callback(request.param("callback")):
            request.channel = Channel.JSON
            raise ValidationError("Invalid callback", reason="invalid_callback")
        broker_id = request.param("broker")
        if not broker_id:
            raise ValidationError("No broker specified", reason="no_broker")
        token = request.param("token")
        if not token:
            raise ValidationError("No token specified", reason="no_token")

        # unknown broker and bad checksum share one answer
        identity = await self._identity_or_none(broker_id)
        expected = derive(ATTACH, broker_id, token, identity.secret) if identity is not None else None
        if identity is None or not checksums_match(expected, request.param("checksum")):
            self._metrics.attach_total.labels(outcome="invalid_checksum").inc()
            raise ValidationError("Invalid checksum", reason="invalid_checksum")

        real_id = await self._ensure_user_session(request)
        sid = session_id(broker_id, token, identity.secret)
        await self._bridge.set(sid, real_id, self._settings.bridge_ttl_seconds)

        self._metrics.attach_total.labels(outcome="ok").inc()
        log_event(
            LOGGER,
            msg="SSO_ATTACH_OK",
            rid=request.correlation_id,
            broker=broker_id,
            channel=request.channel.value,
            sid=masked(real_id),
        )
        return render_success(request.channel, request, self._formatter, {"success": "attached"})

    async def _ensure_user_session(self, request: SSORequest) -> str:
        session = request.session
        if not self._settings.attach_requires_authentication:
            return await session.start()
        current = session.current_id()
        if current is None or not session.get(SSO_USER_KEY):
            self._metrics.attach_total.labels(outcome="not_authenticated").inc()
            raise AuthorizationError("Not logged in", reason="not_authenticated")
        return current

    async def start_broker_session(self, request: SSORequest) -> str:
        """Resolve ``sso_session`` to the linked user session; returns the broker id."""

        if request.broker_id is not None:
            return request.broker_id

        sid = request.param("sso_session")
        if not sid:
            raise ValidationError("Broker didn't send a session key", reason="no_session_key")
        parsed = parse_session_id(sid)
        if parsed is None:
            self._metrics.resolve_total.labels(outcome="invalid").inc()
            raise ValidationError("Invalid session id", reason="invalid_session_id")
        broker_id, token, _ = parsed

        linked_id = await self._bridge.get(sid)
        if not linked_id:
            self._metrics.resolve_total.labels(outcome="not_attached").inc()
            raise AuthorizationError(
                "The broker session id isn't attached to a user session",
                reason="not_attached",
            )

        identity = await self._identity_or_none(broker_id)
        expected = derive(SESSION, broker_id, token, identity.secret) if identity is not None else None
        if not checksums_match(expected, sid):
            self._metrics.resolve_total.labels(outcome="checksum_failed").inc()
            raise AuthorizationError("Checksum failed", reason="checksum_failed")

        session = request.session
        if session.is_active:
            if session.current_id() != linked_id:
                self._metrics.protocol_violations_total.inc()
                raise ProtocolViolation("Session has already started")
        else:
            await session.resume(linked_id)

        request.broker_id = broker_id
        self._metrics.resolve_total.labels(outcome="ok").inc()
        log_event(
            LOGGER,
            msg="SSO_BROKER_SESSION_OK",
            rid=request.correlation_id,
            broker=broker_id,
            sid=masked(linked_id),
        )
        return broker_id

    async def current_user(self, request: SSORequest) -> Mapping[str, Any] | None:
        username = request.session.get(SSO_USER_KEY)
        if not username:
            return None
        user = await self._backend.get_user_info(str(username))
        if user is None:
            raise InternalInvariantError("User not found", reason="user_not_found")
        return dict(user)

    async def user_info(self, request: SSORequest) -> Response:
        await self.start_broker_session(request)
        user = await self.current_user(request)
        code = None if user is not None else CODE_SESSION_EXPIRED
        return render_success(None, request, self._formatter, user, code=code)

    async def login(self, request: SSORequest) -> Response:
        broker_id = await self.start_broker_session(request)
        username = request.param("username")
        if not username:
            raise ValidationError("No username specified", reason="no_username")
        password = request.param("password")
        if not password:
            raise ValidationError("No password specified", reason="no_password")

        params = {
            key: value
            for key, value in request.params.items()
            if key not in {"username", "password", "sso_session"}
        }
        result = await self._backend.authenticate(username, password, params)
        if not result.ok:
            raise ValidationError(result.message or "Invalid credentials", reason="authentication_failed")

        await request.session.set(SSO_USER_KEY, username)
        log_event(
            LOGGER,
            msg="SSO_LOGIN_OK",
            rid=request.correlation_id,
            broker=broker_id,
            user=masked(username),
        )
        return await self.user_info(request)

    async def logout(self, request: SSORequest) -> Response:
        broker_id = await self.start_broker_session(request)
        await request.session.set(SSO_USER_KEY, None)
        log_event(LOGGER, msg="SSO_LOGOUT_OK", rid=request.correlation_id, broker=broker_id)
        return Response(status_code=204)


__all__ = ["CommandHandler", "SSOServer"]
