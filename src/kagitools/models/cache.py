from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """One shaped tool result held by a ResponseCache."""

    value: dict[str, Any]  # Tool result as returned on the miss, without the cached tag
    fetched_at: datetime
    expires_at: datetime
