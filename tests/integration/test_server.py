"""Tests for server assembly: state, tool registration, webhook wiring."""

from __future__ import annotations

import json

from mcp.types import CallToolResult

from kagitools.config import ServerSettings, Settings, WebhookSettings
from kagitools.postmark import HttpForwardSink, LogSink, PostmarkWebhookHandler
from kagitools.server import (
    _serialise_tool_result,
    build_lifespan,
    build_server,
    build_state,
    build_webhook_handlers,
    close_state,
)


class TestBuildState:
    async def test_tools_offered_with_env_key(self) -> None:
        state = build_state(Settings(), {"KAGI_API_KEY": "k"})
        try:
            assert sorted(state.tools) == ["kagi_fastgpt", "kagi_summarize"]
            assert state.fetcher is not None
        finally:
            assert state.http_client is not None
            await state.http_client.aclose()

    async def test_no_tools_without_key(self) -> None:
        state = build_state(Settings(), {})
        try:
            assert state.tools == {}
        finally:
            assert state.http_client is not None
            await state.http_client.aclose()


class TestBuildServer:
    async def test_registers_enabled_tools(self) -> None:
        state = build_state(Settings(), {"KAGI_API_KEY": "k"})
        mcp = build_server(state)

        tools = await mcp.list_tools()

        assert sorted(tool.name for tool in tools) == ["kagi_fastgpt", "kagi_summarize"]
        assert {tool.name: tool.title for tool in tools} == {
            "kagi_fastgpt": "Kagi FastGPT",
            "kagi_summarize": "Kagi Summarizer",
        }
        await state.http_client.aclose()

    async def test_registers_nothing_without_tools(self) -> None:
        state = build_state(Settings(), {})
        mcp = build_server(state)

        assert await mcp.list_tools() == []
        await state.http_client.aclose()


class TestClientLifecycle:
    async def test_close_state_is_idempotent(self) -> None:
        state = build_state(Settings(), {})
        await close_state(state)
        await close_state(state)
        assert state.http_client is not None
        assert state.http_client.is_closed

    async def test_stdio_lifespan_closes_client_on_exit(self) -> None:
        state = build_state(Settings(), {})
        mcp = build_server(state)
        lifespan = build_lifespan(state, close_on_exit=True)

        async with lifespan(mcp) as yielded:
            assert yielded is state
            assert not state.http_client.is_closed

        assert state.http_client.is_closed

    async def test_http_session_lifespan_keeps_client_open(self) -> None:
        state = build_state(Settings(server=ServerSettings(transport="http")), {})
        mcp = build_server(state)
        lifespan = build_lifespan(state, close_on_exit=False)

        async with lifespan(mcp):
            pass

        assert not state.http_client.is_closed
        await close_state(state)


class TestSerialiseToolResult:
    def test_success_passes_through(self) -> None:
        result = {"answer": "42"}
        assert _serialise_tool_result(result) is result

    def test_error_is_wrapped(self) -> None:
        error = {"error": {"code": "missing_input", "message": "m"}}

        wrapped = _serialise_tool_result(error)

        assert isinstance(wrapped, CallToolResult)
        assert wrapped.isError is True
        assert json.loads(wrapped.content[0].text) == error


class TestBuildWebhookHandlers:
    def test_disabled(self) -> None:
        settings = Settings(webhook=WebhookSettings(enabled=False))
        assert build_webhook_handlers(settings, None) == []

    def test_default_logs(self) -> None:
        [handler] = build_webhook_handlers(Settings(), None)
        assert isinstance(handler, PostmarkWebhookHandler)
        assert handler.path == "/webhooks/postmark"
        assert isinstance(handler.sink, LogSink)

    async def test_forward_url_uses_http_sink(self) -> None:
        settings = Settings(
            webhook=WebhookSettings(path="/hooks/mail", forward_url="http://127.0.0.1:9/in")
        )
        state = build_state(settings, {})

        [handler] = build_webhook_handlers(settings, state.http_client)

        assert handler.path == "/hooks/mail"
        assert isinstance(handler.sink, HttpForwardSink)
        await state.http_client.aclose()
