"""Tool handlers for cache inspection and maintenance.

Operational surface only: stats, paged entry listing, read-only SQL, and
clearing. No MCP or FastMCP imports.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from docsrs_mcp.errors import InvalidInputError
from docsrs_mcp.models.tools import ListCacheEntriesInput, QueryCacheInput

if TYPE_CHECKING:
    from docsrs_mcp.fetcher import DocsFetcher
    from docsrs_mcp.state import AppState

log = structlog.get_logger()


def _fetcher(state: AppState) -> DocsFetcher:
    if state.fetcher is None:
        raise RuntimeError("DocsFetcher not initialized")
    return state.fetcher


async def handle_stats(state: AppState) -> dict:
    stats = await _fetcher(state).get_cache_stats()
    return stats.model_dump(mode="json")


async def handle_list_entries(state: AppState, limit: int = 20, offset: int = 0) -> dict:
    try:
        validated = ListCacheEntriesInput(limit=limit, offset=offset)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc

    entries = await _fetcher(state).get_cache_entries(validated.limit, validated.offset)
    return {
        "limit": validated.limit,
        "offset": validated.offset,
        "entries": [entry.model_dump(mode="json") for entry in entries],
    }


async def handle_query(sql: str, state: AppState) -> dict:
    try:
        validated = QueryCacheInput(sql=sql)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc

    rows = await _fetcher(state).query_cache_db(validated.sql)
    return {"row_count": len(rows), "rows": rows}


async def handle_clear(state: AppState) -> dict:
    fetcher = _fetcher(state)
    before = await fetcher.get_cache_stats()
    await fetcher.clear_cache()
    log.info("cache_cleared_by_tool", removed=before.entry_count)
    return {"cleared": True, "removed": before.entry_count}
