"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build AppState (http client, fetcher, enabled tools)
- Register one MCP tool per enabled Kagi tool
- Start the correct transport (stdio, or HTTP with the Postmark webhook)
"""

from __future__ import annotations

import functools
import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

from kagitools import __version__
from kagitools.config import Settings
from kagitools.fetcher import Fetcher, build_http_client
from kagitools.postmark import HttpForwardSink, LogSink, PostmarkWebhookHandler
from kagitools.state import AppState
from kagitools.tools import create_tools
from kagitools.transport import run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable, Mapping
    from contextlib import AbstractAsyncContextManager

    import httpx

    from kagitools.protocols import MessageSink
    from kagitools.tools.base import KagiTool

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout is reserved for the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# State and webhook wiring
# ---------------------------------------------------------------------------


def build_state(settings: Settings, environ: Mapping[str, str] | None = None) -> AppState:
    """Create the shared http client, fetcher and the enabled tools.

    The client lives for the whole process, like the tools' caches.
    """
    http_client = build_http_client()
    fetcher = Fetcher(http_client)
    return AppState(
        settings=settings,
        http_client=http_client,
        fetcher=fetcher,
        tools=create_tools(settings, fetcher, environ),
    )


def build_webhook_handlers(
    settings: Settings, http_client: httpx.AsyncClient | None
) -> list[PostmarkWebhookHandler]:
    if not settings.webhook.enabled:
        return []
    sink: MessageSink = LogSink()
    if settings.webhook.forward_url and http_client is not None:
        sink = HttpForwardSink(http_client, settings.webhook.forward_url)
    return [PostmarkWebhookHandler(path=settings.webhook.path, sink=sink)]


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------


def _serialise_tool_result(result: dict[str, Any]) -> object:
    """Pass successes through; wrap error records in the MCP error envelope."""
    if "error" in result:
        return CallToolResult(
            content=[TextContent(type="text", text=json.dumps(result))],
            isError=True,
        )
    return result


def _present(**kwargs: Any) -> dict[str, Any]:
    return {key: value for key, value in kwargs.items() if value is not None}


def register_tools(mcp: FastMCP, tools: Mapping[str, KagiTool]) -> None:
    """Register an MCP tool for each enabled Kagi tool."""
    fastgpt = tools.get("kagi_fastgpt")
    if fastgpt is not None:

        @mcp.tool(name=fastgpt.name, title=fastgpt.label, description=fastgpt.description)
        async def kagi_fastgpt(query: str, ctx: Context, cache: bool | None = None) -> object:
            """Answer a question with Kagi FastGPT."""
            result = await fastgpt.execute(
                str(ctx.request_id), _present(query=query, cache=cache)
            )
            return _serialise_tool_result(result)

    summarize = tools.get("kagi_summarize")
    if summarize is not None:

        @mcp.tool(
            name=summarize.name, title=summarize.label, description=summarize.description
        )
        async def kagi_summarize(
            ctx: Context,
            url: str | None = None,
            text: str | None = None,
            engine: str | None = None,
            summary_type: str | None = None,
            target_language: str | None = None,
            cache: bool | None = None,
        ) -> object:
            """Summarize a URL or a block of text with the Kagi Summarizer."""
            result = await summarize.execute(
                str(ctx.request_id),
                _present(
                    url=url,
                    text=text,
                    engine=engine,
                    summary_type=summary_type,
                    target_language=target_language,
                    cache=cache,
                ),
            )
            return _serialise_tool_result(result)


async def close_state(state: AppState) -> None:
    """Release the shared http client. Safe to call more than once."""
    if state.http_client is not None and not state.http_client.is_closed:
        await state.http_client.aclose()
        log.info("http_client_closed")


def build_lifespan(
    state: AppState, *, close_on_exit: bool
) -> Callable[[FastMCP], AbstractAsyncContextManager[AppState]]:
    """Lifespan handing ``state`` to each MCP session.

    Under stdio there is exactly one session, so its exit closes the shared
    client. Under HTTP every session enters the lifespan and the client is
    closed at server shutdown instead (see ``build_http_app``).
    """

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
        log.info("session_started", tools=sorted(state.tools))
        try:
            yield state
        finally:
            if close_on_exit:
                await close_state(state)

    return lifespan


def build_server(state: AppState) -> FastMCP:
    close_on_exit = state.settings.server.transport == "stdio"
    mcp = FastMCP("kagitools", lifespan=build_lifespan(state, close_on_exit=close_on_exit))
    # FastMCP doesn't expose a version kwarg; set it on the underlying Server
    # so the MCP initialize handshake reports our version, not the SDK's.
    mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]
    register_tools(mcp, state.tools)
    return mcp


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    setup_logging(settings)

    state = build_state(settings)
    mcp = build_server(state)

    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
        tools=sorted(state.tools),
    )
    if not state.tools:
        log.warning("no_tools_enabled", hint="Set KAGI_API_KEY or configure tools.*.api_key")

    if settings.server.transport == "http":
        run_http_server(
            mcp,
            settings,
            build_webhook_handlers(settings, state.http_client),
            on_shutdown=functools.partial(close_state, state),
        )
        return

    mcp.run()


if __name__ == "__main__":
    main()
