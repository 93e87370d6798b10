"""Tool handler for kagi_fastgpt.

Answers a question with Kagi FastGPT (LLM plus live web search) and returns
the answer with its source references. No MCP imports; server.py handles the
MCP wiring.
"""

from __future__ import annotations

import functools
import time
from typing import TYPE_CHECKING, Any

import structlog

from kagitools.cache import ResponseCache
from kagitools.config import resolve_cache, resolve_fastgpt_config
from kagitools.keys import collapse_whitespace, fingerprint, normalize_cache_key
from kagitools.models.kagi import KagiData
from kagitools.models.tools import FastGPTInput, FastGPTOutput, FastGPTReference
from kagitools.tools.base import KagiTool, elapsed_ms, require_api_key, run_cached, validate_input

if TYPE_CHECKING:
    from collections.abc import Mapping

    from kagitools.config import Settings
    from kagitools.protocols import CacheProtocol, FetcherProtocol

TOOL_NAME = "kagi_fastgpt"
PROVIDER = "kagi-fastgpt"
ENDPOINT = "https://kagi.com/api/v0/fastgpt"
DOCS_URL = "https://help.kagi.com/kagi/api/fastgpt.html"
DESCRIPTION = (
    "Answer questions using Kagi FastGPT - an AI that searches the web and provides "
    "synthesized answers with references. Best for factual questions requiring up-to-date "
    "information. Returns an answer with source citations."
)


async def handle(
    args: dict[str, Any],
    *,
    settings: Settings,
    fetcher: FetcherProtocol,
    cache: CacheProtocol,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Handle a kagi_fastgpt tool call."""
    log = structlog.get_logger().bind(tool=TOOL_NAME)
    log.info("handler_called")

    config = resolve_fastgpt_config(settings, environ)
    api_key = require_api_key(
        config, tool=TOOL_NAME, config_path="tools.fastgpt", docs=DOCS_URL
    )

    validated = validate_input(
        FastGPTInput,
        args,
        suggestion="Provide a non-empty 'query' string and an optional boolean 'cache'.",
        docs=DOCS_URL,
    )
    use_cache = resolve_cache(validated.cache, config.cache_default)
    query = collapse_whitespace(validated.query)
    cache_key = normalize_cache_key(PROVIDER, "answer", fingerprint(query))

    async def call_upstream() -> dict[str, Any]:
        started = time.monotonic()
        body = await fetcher.post_json(
            ENDPOINT,
            {"query": query, "cache": use_cache, "web_search": True},
            api_key=api_key,
            timeout_seconds=config.timeout_seconds,
            provider="Kagi FastGPT",
        )
        data = body.data or KagiData()
        output = FastGPTOutput(
            query=query,
            took_ms=elapsed_ms(started),
            answer=data.output or "",
            tokens=data.tokens,
            references=[
                FastGPTReference(
                    title=ref.title or "",
                    url=ref.url or "",
                    snippet=ref.snippet or "",
                )
                for ref in data.references
            ],
            api_balance=body.meta.api_balance,
        )
        log.info("answer_complete", reference_count=len(output.references))
        return output.model_dump(mode="json")

    return await run_cached(
        cache,
        cache_key,
        call_upstream,
        use_cache=use_cache,
        ttl_seconds=config.cache_ttl_seconds,
    )


def create_kagi_fastgpt_tool(
    settings: Settings,
    fetcher: FetcherProtocol,
    *,
    sandboxed: bool = False,
    cache: CacheProtocol | None = None,
    environ: Mapping[str, str] | None = None,
) -> KagiTool | None:
    """Build the kagi_fastgpt tool, or None when it must not be offered.

    The tool is hidden when disabled, and when no API key resolves outside a
    sandboxed runtime.
    """
    config = resolve_fastgpt_config(settings, environ)
    if not config.enabled:
        return None
    if config.api_key is None and not sandboxed:
        return None

    store = cache if cache is not None else ResponseCache(TOOL_NAME)
    return KagiTool(
        name=TOOL_NAME,
        label="Kagi FastGPT",
        description=DESCRIPTION,
        handler=functools.partial(
            handle, settings=settings, fetcher=fetcher, cache=store, environ=environ
        ),
        cache=store,
    )
