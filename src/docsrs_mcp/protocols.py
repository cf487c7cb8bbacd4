"""Protocol interfaces for swappable components.

DocsFetcher and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to substitute a scripted transport without patching httpx globally
- Future cache backends to be swapped without changing the fetcher
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping

    from docsrs_mcp.models.cache import CacheEntryInfo, CacheLookup, CacheStats
    from docsrs_mcp.models.fetch import TransportResponse


class TransportProtocol(Protocol):
    """Performs a single GET and returns the raw, still-encoded response."""

    async def get(self, url: str, headers: Mapping[str, str]) -> TransportResponse: ...


class CacheProtocol(Protocol):
    """Interface for the document cache backend."""

    @property
    def max_size(self) -> int: ...

    async def get(self, key: str) -> CacheLookup: ...

    async def set(self, key: str, value: Any, ttl_ms: int) -> None: ...

    async def clear(self) -> None: ...

    async def cleanup_expired(self) -> int: ...

    async def close(self) -> None: ...

    async def stats(self) -> CacheStats: ...

    async def list_entries(self, limit: int = 20, offset: int = 0) -> list[CacheEntryInfo]: ...

    async def query(self, sql: str, *, max_rows: int = ...) -> list[dict]: ...
