"""Tool adapter shell shared by every Kagi tool.

A ``KagiTool`` pairs a name and parameter schema with an async handler. The
handler raises ``KagiToolError`` for every expected failure; ``execute``
turns that into a structured error result so tool calls never raise for
provider, config or input problems.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from kagitools.config import API_KEY_ENV_VAR
from kagitools.errors import ErrorCode, KagiToolError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from kagitools.config import ResolvedToolConfig
    from kagitools.protocols import CacheProtocol

log = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class KagiTool:
    name: str
    label: str
    description: str
    handler: Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]
    cache: CacheProtocol = field(repr=False)

    async def execute(self, call_id: str, args: dict[str, Any] | None) -> dict[str, Any]:
        """Run one tool call and return its JSON-shaped result or error record."""
        structlog.contextvars.bind_contextvars(tool_call_id=call_id)
        try:
            return await self.handler(args or {})
        except KagiToolError as exc:
            log.warning(
                "tool_error",
                tool=self.name,
                code=exc.code,
                message=exc.message,
                recoverable=exc.recoverable,
            )
            return exc.to_dict()
        except Exception:
            log.error("tool_unexpected_error", tool=self.name, exc_info=True)
            raise
        finally:
            structlog.contextvars.unbind_contextvars("tool_call_id")


def validate_input(
    model: type[ModelT], args: dict[str, Any], *, suggestion: str, docs: str
) -> ModelT:
    """Build the typed request record, or raise INVALID_INPUT."""
    try:
        return model.model_validate(args)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in exc.errors()
        )
        raise KagiToolError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid arguments: {problems}",
            suggestion=suggestion,
            recoverable=False,
            docs=docs,
        ) from exc


def require_api_key(config: ResolvedToolConfig, *, tool: str, config_path: str, docs: str) -> str:
    """Return the resolved API key, or raise the matching configuration error."""
    if not config.enabled:
        raise KagiToolError(
            code=ErrorCode.TOOL_DISABLED,
            message=f"{tool} is disabled.",
            suggestion=f"Set {config_path}.enabled to true to use this tool.",
            recoverable=False,
            docs=docs,
        )
    if config.api_key is None:
        raise KagiToolError(
            code=ErrorCode.MISSING_API_KEY,
            message=(
                f"{tool} needs an API key. Set {API_KEY_ENV_VAR} in the server environment, "
                f"or configure {config_path}.api_key."
            ),
            suggestion=f"Provide a Kagi API key via {API_KEY_ENV_VAR}.",
            recoverable=False,
            docs=docs,
        )
    return config.api_key


async def run_cached(
    cache: CacheProtocol,
    key: str,
    call: Callable[[], Awaitable[dict[str, Any]]],
    *,
    use_cache: bool,
    ttl_seconds: float,
) -> dict[str, Any]:
    """Serve ``key`` from ``cache`` or run ``call`` and store its result.

    With ``use_cache`` false the cache is neither read nor written. Hits are
    returned with ``cached: True``; the stored value never carries the tag.
    Callers always receive their own copy of the data.
    Concurrent misses for one key are not coalesced; the last write wins.
    """
    log = structlog.get_logger().bind(key=key)
    if use_cache:
        entry = cache.get(key)
        if entry is not None:
            log.info("cache_hit", cached_at=entry.fetched_at.isoformat())
            return {**copy.deepcopy(entry.value), "cached": True}
        log.info("cache_miss_fetching")
    else:
        log.info("cache_bypassed")

    result = await call()

    if use_cache:
        cache.set(key, result, ttl_seconds)
    return result


def elapsed_ms(started: float) -> int:
    """Milliseconds since ``started`` (a ``time.monotonic()`` reading)."""
    return int((time.monotonic() - started) * 1000)
