"""Shared test fixtures for the docsrs_mcp test suite."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import pytest

from docsrs_mcp.cache import PersistentCache
from docsrs_mcp.fetcher import DocsFetcher
from docsrs_mcp.models.fetch import TransportResponse

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Mapping

SERDE_DOC = {
    "root": 0,
    "crate_version": "1.0.219",
    "includes_private": False,
    "index": {"0": {"name": "serde", "visibility": "public"}},
    "format_version": 39,
}


class FakeClock:
    """Deterministic replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Scripted TransportProtocol that records every call."""

    def __init__(self, response: TransportResponse | None = None) -> None:
        self.response = response or json_response(SERDE_DOC)
        self.error: BaseException | None = None
        self.delay: float = 0.0
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.cancelled = False

    async def get(self, url: str, headers: Mapping[str, str]) -> TransportResponse:
        self.calls.append((url, dict(headers)))
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


def json_response(
    document: object,
    *,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> TransportResponse:
    return TransportResponse(
        status_code=status_code,
        reason_phrase="OK" if status_code == 200 else "",
        headers=headers or {"content-type": "application/json"},
        content=json.dumps(document).encode(),
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
async def cache(clock: FakeClock) -> AsyncGenerator[PersistentCache, None]:
    """In-memory cache with room for five entries and a controllable clock."""
    cache = await PersistentCache.open(None, max_size=5, clock=clock)
    yield cache
    await cache.close()


@pytest.fixture()
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def fetcher(fake_transport: FakeTransport, cache: PersistentCache) -> DocsFetcher:
    return DocsFetcher(
        fake_transport,
        cache,
        cache_ttl_ms=1000,
        request_timeout_ms=5000,
    )


@pytest.fixture()
def serde_doc() -> dict:
    return json.loads(json.dumps(SERDE_DOC))


@pytest.fixture(name="json_response")
def json_response_fixture():
    """Factory building a TransportResponse whose body is the given document."""
    return json_response


@pytest.fixture()
def raw_response():
    """Factory building a TransportResponse from raw body bytes and headers."""

    def _make(
        content: bytes,
        headers: dict[str, str] | None = None,
        status_code: int = 200,
    ) -> TransportResponse:
        return TransportResponse(
            status_code=status_code,
            headers=headers or {},
            content=content,
        )

    return _make
