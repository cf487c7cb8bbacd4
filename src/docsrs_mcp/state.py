"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from docsrs_mcp.config import Settings
    from docsrs_mcp.fetcher import DocsFetcher


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    http_client: httpx.AsyncClient | None = None
    fetcher: DocsFetcher | None = None
