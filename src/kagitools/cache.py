"""In-memory response cache for tool adapters.

Each tool owns one ``ResponseCache`` for the life of the process. Entries are
bounded by time only: an expired entry is dropped the next time it is read,
and there is no background sweeper and no size limit. All access happens on
the event loop thread, so no locking is needed.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from kagitools.models.cache import CacheEntry

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ResponseCache:
    """Dict-backed TTL cache implementing CacheProtocol."""

    def __init__(self, name: str = "default", *, now: Callable[[], datetime] = _utcnow) -> None:
        self.name = name
        self._now = now
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        """Return the live entry for ``key``, or ``None`` if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        # An entry written with ttl <= 0 is already expired on the next read.
        if self._now() >= entry.expires_at:
            del self._entries[key]
            log.debug("cache_entry_expired", cache=self.name, key=key)
            return None
        return entry

    def set(self, key: str, value: dict[str, Any], ttl_seconds: float) -> None:
        """Insert or replace the entry for ``key``.

        The stored value is a deep copy, so later edits to ``value`` never
        reach the cache. An expiry past the calendar's end is pinned to it.
        """
        now = self._now()
        if ttl_seconds <= 0:
            expires_at = now
        else:
            try:
                expires_at = now + timedelta(seconds=ttl_seconds)
            except OverflowError:
                expires_at = datetime.max.replace(tzinfo=now.tzinfo)
        self._entries[key] = CacheEntry(
            value=copy.deepcopy(value),
            fetched_at=now,
            expires_at=expires_at,
        )

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
