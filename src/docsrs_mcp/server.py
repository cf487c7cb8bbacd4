"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the stdio transport
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import docsrs_mcp.tools.cache_admin as t_cache
import docsrs_mcp.tools.lookup_crate as t_lookup
from docsrs_mcp import __version__
from docsrs_mcp.config import Settings
from docsrs_mcp.errors import DocsFetcherError
from docsrs_mcp.fetcher import create_docs_fetcher
from docsrs_mcp.state import AppState
from docsrs_mcp.transport import build_http_client

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout carries the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        cache_db=settings.cache.storage_path,
    )

    http_client = build_http_client(settings.fetcher)
    fetcher = await create_docs_fetcher(settings, http_client)

    if settings.cache.cleanup_on_startup:
        await fetcher.cache.cleanup_expired()

    state = AppState(settings=settings, http_client=http_client, fetcher=fetcher)
    log.info("server_started", version=__version__)

    try:
        yield state
    finally:
        await fetcher.close()
        await http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("docsrs-mcp", lifespan=lifespan)
# FastMCP has no version kwarg, so set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: DocsFetcherError) -> CallToolResult:
    """Convert a DocsFetcherError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


async def _run_tool(tool: str, call: Awaitable[dict]) -> object:
    try:
        return await call
    except DocsFetcherError as exc:
        log.warning(
            "tool_error",
            tool=tool,
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool=tool, exc_info=True)
        raise


@mcp.tool()
async def lookup_crate_docs(
    crate_name: str,
    ctx: Context,
    version: str | None = None,
    target: str | None = None,
    format_version: int | None = None,
) -> object:
    """Fetch the rustdoc JSON for a crate from docs.rs.

    version defaults to the latest release. target selects a platform triple
    (e.g. x86_64-pc-windows-msvc) and format_version a rustdoc JSON format.
    Results are cached; from_cache tells whether docs.rs was contacted.
    """
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool(
        "lookup_crate_docs",
        t_lookup.handle(crate_name, state, version, target, format_version),
    )


@mcp.tool()
async def get_cache_stats(ctx: Context) -> object:
    """Report cache entry count, hit/miss counters and storage size."""
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool("get_cache_stats", t_cache.handle_stats(state))


@mcp.tool()
async def list_cache_entries(ctx: Context, limit: int = 20, offset: int = 0) -> object:
    """List cached documents, newest first."""
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool("list_cache_entries", t_cache.handle_list_entries(state, limit, offset))


@mcp.tool()
async def query_cache(sql: str, ctx: Context) -> object:
    """Run a single read-only SELECT against the cache_entries table."""
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool("query_cache", t_cache.handle_query(sql, state))


@mcp.tool()
async def clear_cache(ctx: Context) -> object:
    """Remove every cached document."""
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool("clear_cache", t_cache.handle_clear(state))


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
