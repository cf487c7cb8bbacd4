"""Integration test fixtures.

Provides a fully wired AppState: an in-memory PersistentCache, a real
httpx.AsyncClient (mocked per test with respx) and the DocsFetcher built on
top of them.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import httpx
import pytest

from docsrs_mcp.cache import PersistentCache
from docsrs_mcp.config import Settings
from docsrs_mcp.fetcher import DocsFetcher
from docsrs_mcp.state import AppState
from docsrs_mcp.transport import HttpxTransport

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests.

    Points the cache database at an isolated tmp directory and routes docs.rs
    to an unroutable address so any accidental network call fails fast.
    """
    env = os.environ.copy()
    env["DOCSRS_MCP__CACHE__DB_PATH"] = str(tmp_path / "cache.db")
    env["DOCSRS_MCP__FETCHER__BASE_URL"] = "http://127.0.0.1:1"
    env["DOCSRS_MCP__FETCHER__REQUEST_TIMEOUT_MS"] = "2000"
    return env


@pytest.fixture()
async def app_state() -> AsyncGenerator[AppState, None]:
    """Full AppState wired for handler-level integration tests."""
    cache = await PersistentCache.open(None, max_size=10)
    async with httpx.AsyncClient() as client:
        fetcher = DocsFetcher(HttpxTransport(client), cache)
        state = AppState(
            settings=Settings(),
            http_client=client,
            fetcher=fetcher,
        )
        yield state
    await fetcher.close()
