"""Protocol interfaces for swappable components.

Tool handlers reference these protocols, not the concrete implementations.
This allows:
- Tests to use lightweight fakes for the cache and the upstream fetcher
- Future backends (e.g. a shared Redis cache) to be swapped without changing tool code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from kagitools.models.cache import CacheEntry
    from kagitools.models.kagi import KagiResponse


class CacheProtocol(Protocol):
    """Interface for a per-tool response cache."""

    def get(self, key: str) -> CacheEntry | None: ...

    def set(self, key: str, value: dict[str, Any], ttl_seconds: float) -> None: ...


class FetcherProtocol(Protocol):
    """Interface for the Kagi API client."""

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        api_key: str,
        timeout_seconds: float,
        provider: str,
    ) -> KagiResponse: ...


class MessageSink(Protocol):
    """Downstream destination for formatted inbound-email summaries."""

    async def send(self, message: str) -> None: ...
