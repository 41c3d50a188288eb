from __future__ import annotations

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis import asyncio as redis_asyncio

from .backend import SSOBackend
from .bridge_cache import BridgeCache, MemoryBridgeCache, RedisBridgeCache
from .clock import system_clock
from .config import ServerSettings
from .errors import SSOError
from .logging_utils import correlation_id_var
from .metrics import SSOMetrics
from .models import SSORequest
from .server import SSOServer
from .sessions import MemorySessionStore, RedisSessionStore, ServerSession, SessionStore

_COMMAND_METHODS = ["GET", "POST", "DELETE"]


def _resolve_correlation_id(request: Request) -> str:
    header = request.headers.get("X-Request-ID")
    if header and header.strip():
        return header.strip()
    return uuid.uuid4().hex


async def _request_params(request: Request, command: str | None) -> dict[str, str]:
    params = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        params.update({key: value for key, value in form.items() if isinstance(value, str)})
    if command:
        params["command"] = command
    return params


def create_sso_app(*, server: SSOServer, session_store: SessionStore) -> FastAPI:
    """Expose ``server`` over HTTP: ``/?command=attach`` or ``/attach``."""

    app = FastAPI()
    app.state.sso_server = server
    app.state.session_store = session_store
    settings = server.settings
    cookie_name = settings.session_cookie_name

    @app.exception_handler(SSOError)
    async def sso_error_handler(request: Request, exc: SSOError) -> JSONResponse:
        return JSONResponse({"error": exc.message}, status_code=exc.status or 500)

    async def handle(request: Request, command: str | None) -> Response:
        session = await ServerSession.open(session_store, request.cookies.get(cookie_name))
        sso_request = SSORequest(
            params=await _request_params(request, command),
            session=session,
            accept=request.headers.get("accept", ""),
            correlation_id=_resolve_correlation_id(request),
        )
        token = correlation_id_var.set(sso_request.correlation_id)
        try:
            response = await server.dispatch(sso_request)
        finally:
            correlation_id_var.reset(token)
        if session.started:
            response.set_cookie(
                cookie_name,
                session.current_id() or "",
                max_age=settings.session_ttl_seconds,
                path="/",
                httponly=True,
            )
        response.headers["X-Request-ID"] = sso_request.correlation_id
        return response

    @app.get("/metrics")
    async def metrics_endpoint() -> PlainTextResponse:
        data = generate_latest(server.metrics.registry)
        return PlainTextResponse(data.decode("utf-8"), media_type=CONTENT_TYPE_LATEST)

    @app.api_route("/", methods=_COMMAND_METHODS)
    async def root(request: Request) -> Response:
        return await handle(request, None)

    @app.api_route("/{command}", methods=_COMMAND_METHODS)
    async def command(request: Request, command: str) -> Response:
        return await handle(request, command)

    return app


def create_app_from_settings(
    backend: SSOBackend,
    *,
    settings: ServerSettings | None = None,
    metrics: SSOMetrics | None = None,
) -> FastAPI:
    """Wire a server from configuration with redis or in-process storage."""

    settings = settings or ServerSettings.from_env()
    bridge: BridgeCache
    sessions: SessionStore
    if settings.storage == "memory":
        clock = system_clock(settings.timezone)
        bridge = MemoryBridgeCache(ttl_seconds=settings.bridge_ttl_seconds, clock=clock)
        sessions = MemorySessionStore(ttl_seconds=settings.session_ttl_seconds, clock=clock)
    else:
        redis = redis_asyncio.from_url(settings.redis_dsn)
        bridge = RedisBridgeCache(
            redis,
            ttl_seconds=settings.bridge_ttl_seconds,
            namespace=settings.bridge_namespace,
        )
        sessions = RedisSessionStore(
            redis,
            ttl_seconds=settings.session_ttl_seconds,
            namespace=settings.session_namespace,
        )
    server = SSOServer(backend, bridge=bridge, settings=settings, metrics=metrics)
    return create_sso_app(server=server, session_store=sessions)


__all__ = ["create_app_from_settings", "create_sso_app"]
