"""Kagi tool adapters and the factory that assembles the enabled set."""

from __future__ import annotations

from typing import TYPE_CHECKING

from kagitools.tools.kagi_fastgpt import create_kagi_fastgpt_tool
from kagitools.tools.kagi_summarize import create_kagi_summarize_tool

if TYPE_CHECKING:
    from collections.abc import Mapping

    from kagitools.config import Settings
    from kagitools.protocols import FetcherProtocol
    from kagitools.tools.base import KagiTool


def create_tools(
    settings: Settings,
    fetcher: FetcherProtocol,
    environ: Mapping[str, str] | None = None,
) -> dict[str, KagiTool]:
    """Return the tools that should be offered, keyed by tool name.

    Every tool gets its own fresh ResponseCache.
    """
    candidates = [
        create_kagi_fastgpt_tool(
            settings, fetcher, sandboxed=settings.sandboxed, environ=environ
        ),
        create_kagi_summarize_tool(
            settings, fetcher, sandboxed=settings.sandboxed, environ=environ
        ),
    ]
    return {tool.name: tool for tool in candidates if tool is not None}
