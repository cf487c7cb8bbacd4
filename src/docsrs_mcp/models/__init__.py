from __future__ import annotations

from docsrs_mcp.models.cache import CacheEntryInfo, CacheLookup, CacheStats
from docsrs_mcp.models.fetch import FetchResult, TransportResponse
from docsrs_mcp.models.tools import (
    ListCacheEntriesInput,
    LookupCrateDocsInput,
    LookupCrateDocsOutput,
    QueryCacheInput,
)

__all__ = [
    # cache
    "CacheLookup",
    "CacheEntryInfo",
    "CacheStats",
    # fetch
    "TransportResponse",
    "FetchResult",
    # tools
    "LookupCrateDocsInput",
    "LookupCrateDocsOutput",
    "ListCacheEntriesInput",
    "QueryCacheInput",
]
