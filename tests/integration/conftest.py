"""Integration test fixtures.

Tools are wired to a real Fetcher over a real httpx client; tests mock the
Kagi endpoints with respx. ``environ={}`` keeps a developer's own
KAGI_API_KEY out of the picture.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import httpx
import pytest

from kagitools.fetcher import Fetcher, build_http_client
from kagitools.tools.kagi_fastgpt import create_kagi_fastgpt_tool
from kagitools.tools.kagi_summarize import create_kagi_summarize_tool

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from kagitools.cache import ResponseCache
    from kagitools.config import Settings
    from kagitools.tools.base import KagiTool


@pytest.fixture()
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    client = build_http_client()
    yield client
    await client.aclose()


@pytest.fixture()
def fetcher(http_client: httpx.AsyncClient) -> Fetcher:
    return Fetcher(http_client)


@pytest.fixture()
def fastgpt_tool(settings: Settings, fetcher: Fetcher, cache: ResponseCache) -> KagiTool:
    tool = create_kagi_fastgpt_tool(settings, fetcher, cache=cache, environ={})
    assert tool is not None
    return tool


@pytest.fixture()
def summarize_tool(settings: Settings, fetcher: Fetcher, cache: ResponseCache) -> KagiTool:
    tool = create_kagi_summarize_tool(settings, fetcher, cache=cache, environ={})
    assert tool is not None
    return tool


@pytest.fixture()
def subprocess_env() -> dict[str, str]:
    """Baseline env for subprocess-based MCP tests.

    Forces stdio transport and supplies a key so both tools are offered. No
    test using this env makes a tool call, so the key never reaches Kagi.
    """
    env = os.environ.copy()
    env["KAGITOOLS__SERVER__TRANSPORT"] = "stdio"
    env["KAGITOOLS__LOGGING__LEVEL"] = "WARNING"
    env["KAGI_API_KEY"] = "test-key"
    return env
