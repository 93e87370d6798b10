"""Tool handler for kagi_summarize.

Summarizes a URL (web page, PDF, office document, audio, YouTube video) or a
block of text with the Kagi Universal Summarizer. No MCP imports; server.py
handles the MCP wiring.
"""

from __future__ import annotations

import functools
import time
from typing import TYPE_CHECKING, Any

import structlog

from kagitools.cache import ResponseCache
from kagitools.config import (
    SUMMARIZER_ENGINES,
    SUMMARY_TYPES,
    TARGET_LANGUAGES,
    resolve_cache,
    resolve_summarizer_config,
)
from kagitools.errors import ErrorCode, KagiToolError
from kagitools.keys import canonical_choice, canonical_language, fingerprint, normalize_cache_key
from kagitools.models.kagi import KagiData
from kagitools.models.tools import SummarizeInput, SummarizeOutput
from kagitools.tools.base import KagiTool, elapsed_ms, require_api_key, run_cached, validate_input

if TYPE_CHECKING:
    from collections.abc import Mapping

    from kagitools.config import Settings
    from kagitools.protocols import CacheProtocol, FetcherProtocol

TOOL_NAME = "kagi_summarize"
PROVIDER = "kagi-summarizer"
ENDPOINT = "https://kagi.com/api/v0/summarize"
DOCS_URL = "https://help.kagi.com/kagi/api/summarizer.html"
TEXT_SOURCE_LABEL = "(text input)"
AUTO_LANGUAGE = "auto"
DESCRIPTION = (
    "Summarize content using Kagi Universal Summarizer. Supports web pages, PDFs, "
    "Word/PowerPoint docs, audio files, YouTube videos, and plain text. Choose between "
    "prose summary or bullet-point takeaways. Can translate summaries to 30+ languages."
)


async def handle(
    args: dict[str, Any],
    *,
    settings: Settings,
    fetcher: FetcherProtocol,
    cache: CacheProtocol,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Handle a kagi_summarize tool call."""
    log = structlog.get_logger().bind(tool=TOOL_NAME)
    log.info("handler_called")

    config = resolve_summarizer_config(settings, environ)
    api_key = require_api_key(
        config, tool=TOOL_NAME, config_path="tools.summarizer", docs=DOCS_URL
    )

    validated = validate_input(
        SummarizeInput,
        args,
        suggestion="Provide either 'url' or 'text' as a string; other parameters are optional.",
        docs=DOCS_URL,
    )
    if validated.url is None and validated.text is None:
        raise KagiToolError(
            code=ErrorCode.MISSING_INPUT,
            message="Either 'url' or 'text' parameter is required.",
            suggestion="Pass the document URL as 'url', or the content itself as 'text'.",
            recoverable=False,
            docs=DOCS_URL,
        )
    if validated.url is not None and validated.text is not None:
        raise KagiToolError(
            code=ErrorCode.CONFLICTING_INPUT,
            message="Parameters 'url' and 'text' are mutually exclusive. Provide only one.",
            suggestion="Drop either 'url' or 'text' and call again.",
            recoverable=False,
            docs=DOCS_URL,
        )

    # Unrecognised enum values fall back to the configured default
    engine = canonical_choice(validated.engine, SUMMARIZER_ENGINES) or config.engine
    summary_type = canonical_choice(validated.summary_type, SUMMARY_TYPES) or config.summary_type
    target_language = (
        canonical_language(validated.target_language, TARGET_LANGUAGES) or config.target_language
    )
    use_cache = resolve_cache(validated.cache, config.cache_default)

    # URLs are short identifiers; text is fingerprinted so long inputs stay distinct
    source_key = validated.url if validated.url is not None else fingerprint(validated.text or "")
    cache_key = normalize_cache_key(
        PROVIDER,
        "url" if validated.url is not None else "text",
        source_key,
        engine or "",
        summary_type or "",
        target_language or AUTO_LANGUAGE,
    )

    async def call_upstream() -> dict[str, Any]:
        payload: dict[str, Any] = {
            "engine": engine,
            "summary_type": summary_type,
            "cache": use_cache,
        }
        if validated.url is not None:
            payload["url"] = validated.url
        else:
            payload["text"] = validated.text
        if target_language:
            payload["target_language"] = target_language

        started = time.monotonic()
        body = await fetcher.post_json(
            ENDPOINT,
            payload,
            api_key=api_key,
            timeout_seconds=config.timeout_seconds,
            provider="Kagi Summarizer",
        )
        data = body.data or KagiData()
        output = SummarizeOutput(
            source=validated.url or TEXT_SOURCE_LABEL,
            engine=engine or "",
            summary_type=summary_type or "",
            target_language=target_language or AUTO_LANGUAGE,
            took_ms=elapsed_ms(started),
            summary=data.output or "",
            tokens=data.tokens,
            api_balance=body.meta.api_balance,
        )
        log.info("summary_complete", engine=engine, summary_type=summary_type)
        return output.model_dump(mode="json")

    return await run_cached(
        cache,
        cache_key,
        call_upstream,
        use_cache=use_cache,
        ttl_seconds=config.cache_ttl_seconds,
    )


def create_kagi_summarize_tool(
    settings: Settings,
    fetcher: FetcherProtocol,
    *,
    sandboxed: bool = False,
    cache: CacheProtocol | None = None,
    environ: Mapping[str, str] | None = None,
) -> KagiTool | None:
    """Build the kagi_summarize tool, or None when it must not be offered."""
    config = resolve_summarizer_config(settings, environ)
    if not config.enabled:
        return None
    if config.api_key is None and not sandboxed:
        return None

    store = cache if cache is not None else ResponseCache(TOOL_NAME)
    return KagiTool(
        name=TOOL_NAME,
        label="Kagi Summarizer",
        description=DESCRIPTION,
        handler=functools.partial(
            handle, settings=settings, fetcher=fetcher, cache=store, environ=environ
        ),
        cache=store,
    )
