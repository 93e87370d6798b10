"""Application state container.

AppState is created once when the server is built and handed to the FastMCP
lifespan, so tool wrappers and tests can reach the shared components.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from kagitools.config import Settings
    from kagitools.protocols import FetcherProtocol
    from kagitools.tools.base import KagiTool


@dataclass
class AppState:
    """Holds all shared runtime state."""

    settings: Settings
    http_client: httpx.AsyncClient | None = None
    fetcher: FetcherProtocol | None = None
    # Enabled tools by name; each owns its ResponseCache
    tools: dict[str, KagiTool] = field(default_factory=dict)
