"""Streamable HTTP transport, webhook routing and security middleware."""

from __future__ import annotations

import re
import secrets
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import Headers
from starlette.responses import Response

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from mcp.server.fastmcp import FastMCP
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

    from kagitools.config import Settings

    ClaimingHandler = Callable[[Scope, Receive, Send], Awaitable[bool]]

log = structlog.get_logger()

SUPPORTED_PROTOCOL_VERSIONS: frozenset[str] = frozenset({"2025-11-25", "2025-06-18", "2025-03-26"})
_LOCALHOST_ORIGIN = re.compile(r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$")


class WebhookRouter:
    """Pure ASGI app that lets claim-or-pass handlers answer first.

    Each HTTP request is offered to ``handlers`` in order. The first handler
    returning True has written the response; if none claims it, the request
    goes to ``app``.
    """

    def __init__(self, app: ASGIApp, handlers: Sequence[ClaimingHandler]) -> None:
        self.app = app
        self.handlers = list(handlers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            for handler in self.handlers:
                if await handler(scope, receive, send):
                    return
        await self.app(scope, receive, send)


class ShutdownHook:
    """Pure ASGI wrapper that awaits ``on_shutdown`` when the server stops.

    The hook runs before ``lifespan.shutdown.complete`` is passed on, so
    uvicorn waits for it. Every other scope goes straight to ``app``.
    """

    def __init__(self, app: ASGIApp, on_shutdown: Callable[[], Awaitable[None]]) -> None:
        self.app = app
        self.on_shutdown = on_shutdown

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "lifespan":
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "lifespan.shutdown.complete":
                await self.on_shutdown()
            await send(message)

        await self.app(scope, receive, send_wrapper)


class MCPSecurityMiddleware:
    """Pure ASGI middleware for HTTP transport security.

    Enforces three checks on every HTTP request:
    1. Optional bearer key authentication.
    2. Origin validation (localhost only) to prevent DNS rebinding.
    3. Protocol version validation via MCP-Protocol-Version header.

    Implemented as pure ASGI (not BaseHTTPMiddleware) so that SSE streaming
    responses are never buffered by the middleware layer.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_enabled: bool,
        auth_key: str | None = None,
    ) -> None:
        self.app = app
        self.auth_enabled = auth_enabled
        self.auth_key = auth_key

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            headers = Headers(scope=scope)

            if self.auth_enabled:
                auth_header = headers.get("authorization", "")
                if not auth_header.startswith("Bearer ") or auth_header[7:] != self.auth_key:
                    await Response("Unauthorized", status_code=401)(scope, receive, send)
                    return

            origin = headers.get("origin", "")
            if origin and not _LOCALHOST_ORIGIN.match(origin):
                await Response("Forbidden", status_code=403)(scope, receive, send)
                return

            proto_version = headers.get("mcp-protocol-version", "")
            if proto_version and proto_version not in SUPPORTED_PROTOCOL_VERSIONS:
                await Response(
                    f"Unsupported protocol version: {proto_version}",
                    status_code=400,
                )(scope, receive, send)
                return

        await self.app(scope, receive, send)


def build_http_app(
    mcp: FastMCP,
    settings: Settings,
    webhook_handlers: Sequence[ClaimingHandler] = (),
    *,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> ASGIApp:
    """Wrap the MCP app in security middleware, with webhooks routed in front.

    Webhook handlers run before, and bypass, the MCP auth and origin checks.
    ``on_shutdown`` runs once when the ASGI server shuts down.
    """
    http_log = log.bind(transport="http")

    auth_key: str | None = settings.server.auth_key or None

    if settings.server.auth_enabled and not auth_key:
        auth_key = secrets.token_urlsafe(32)
        http_log.warning("http_auth_key_auto_generated", auth_key=auth_key)

    if not settings.server.auth_enabled:
        http_log.warning("http_auth_disabled")

    secured_app = MCPSecurityMiddleware(
        mcp.streamable_http_app(),
        auth_enabled=settings.server.auth_enabled,
        auth_key=auth_key,
    )
    app: ASGIApp = secured_app
    if webhook_handlers:
        app = WebhookRouter(app, webhook_handlers)
    if on_shutdown is not None:
        app = ShutdownHook(app, on_shutdown)
    return app


def run_http_server(
    mcp: FastMCP,
    settings: Settings,
    webhook_handlers: Sequence[ClaimingHandler] = (),
    *,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> None:
    """Start the MCP server with Streamable HTTP transport."""
    uvicorn.run(
        build_http_app(mcp, settings, webhook_handlers, on_shutdown=on_shutdown),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )
