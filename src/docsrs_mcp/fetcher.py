"""Cache-first fetcher for docs.rs rustdoc JSON.

All network I/O goes through a single DocsFetcher instance shared across tool
calls. The fetcher receives its transport and cache via constructor injection;
``create_docs_fetcher`` wires the production pair from Settings.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import structlog

from docsrs_mcp.cache import PersistentCache
from docsrs_mcp.decompression import decode_body
from docsrs_mcp.errors import (
    CacheValidationError,
    CrateNotFoundError,
    DocsFetcherError,
    JSONParseError,
    NetworkError,
    RequestTimeoutError,
    log_error,
)
from docsrs_mcp.models.fetch import FetchResult
from docsrs_mcp.transport import HttpxTransport
from docsrs_mcp.urls import DOCS_RS_BASE_URL, build_json_url

if TYPE_CHECKING:
    import httpx

    from docsrs_mcp.config import Settings
    from docsrs_mcp.models.cache import CacheEntryInfo, CacheStats
    from docsrs_mcp.models.fetch import TransportResponse
    from docsrs_mcp.protocols import CacheProtocol, TransportProtocol

log = structlog.get_logger()

DEFAULT_CACHE_TTL_MS = 3_600_000
DEFAULT_REQUEST_TIMEOUT_MS = 30_000

# zstd is left out on purpose: docs.rs answers zstd regardless, and the body
# is decoded by hand.
ACCEPT_ENCODING = "gzip, deflate, br"


class DocsFetcher:
    """Fetches rustdoc JSON for a crate, consulting the cache first."""

    def __init__(
        self,
        transport: TransportProtocol,
        cache: CacheProtocol,
        *,
        cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
        base_url: str = DOCS_RS_BASE_URL,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._cache_ttl_ms = cache_ttl_ms
        self._request_timeout_ms = request_timeout_ms
        self._base_url = base_url

    @property
    def cache(self) -> CacheProtocol:
        return self._cache

    def build_url(
        self,
        crate_name: str,
        version: str | None = None,
        target: str | None = None,
        format_version: int | None = None,
    ) -> str:
        return build_json_url(
            crate_name, version, target, format_version, base_url=self._base_url
        )

    async def fetch_crate_json(
        self,
        crate_name: str,
        version: str | None = None,
        target: str | None = None,
        format_version: int | None = None,
    ) -> FetchResult:
        """Return the rustdoc JSON document for a crate.

        Raises one of the DocsFetcherError subclasses on failure. Cache write
        failures are absorbed by the cache and never surface here.
        """
        url = self.build_url(crate_name, version, target, format_version)
        fetch_log = log.bind(url=url, crate_name=crate_name)

        cached = await self._cache.get(url)
        if cached.hit:
            fetch_log.info("cache_hit")
            return FetchResult(data=cached.value, from_cache=True)

        fetch_log.info(
            "fetching_rustdoc_json",
            version=version,
            target=target,
            format_version=format_version,
        )

        try:
            response = await self._request(url)

            if response.status_code == 404:
                raise CrateNotFoundError(crate_name, version)
            if not response.is_success:
                raise NetworkError(url, response.status_code, response.reason_phrase)

            content_encoding = response.headers.get("content-encoding")
            content_type = response.headers.get("content-type")
            fetch_log.info(
                "response_received",
                status=response.status_code,
                content_type=content_type,
                encoding=content_encoding,
            )

            text = decode_body(
                response.content,
                content_encoding=content_encoding,
                content_type=content_type,
                url=url,
            )
            data = _parse_document(text, url)
        except DocsFetcherError as exc:
            log_error(
                exc,
                url=url,
                crate_name=crate_name,
                version=version,
                target=target,
            )
            raise
        except Exception as exc:
            log_error(exc, url=url, crate_name=crate_name, version=version, target=target)
            raise NetworkError(url, message=str(exc) or type(exc).__name__) from exc

        await self._cache.set(url, data, self._cache_ttl_ms)
        fetch_log.info("rustdoc_json_cached", ttl_ms=self._cache_ttl_ms)

        return FetchResult(data=data, from_cache=False)

    async def _request(self, url: str) -> TransportResponse:
        """Perform the GET under the request deadline.

        On timeout the pending transport call is cancelled, which closes the
        underlying response stream.
        """
        headers = {"Accept-Encoding": ACCEPT_ENCODING}
        try:
            return await asyncio.wait_for(
                self._transport.get(url, headers),
                timeout=self._request_timeout_ms / 1000,
            )
        except TimeoutError as exc:
            raise RequestTimeoutError(url, self._request_timeout_ms) from exc

    # ------------------------------------------------------------------
    # Cache administration
    # ------------------------------------------------------------------

    async def clear_cache(self) -> None:
        await self._cache.clear()

    async def close(self) -> None:
        """Release the cache's storage. Call after in-flight fetches finish."""
        await self._cache.close()

    async def get_cache_stats(self) -> CacheStats:
        return await self._cache.stats()

    async def get_cache_entries(self, limit: int = 20, offset: int = 0) -> list[CacheEntryInfo]:
        return await self._cache.list_entries(limit, offset)

    async def query_cache_db(self, sql: str) -> list[dict]:
        """Run a read-only SQL statement against the cache. Debug use only."""
        try:
            return await self._cache.query(sql)
        except CacheValidationError as exc:
            log_error(exc, sql=sql)
            raise


def _parse_document(text: str, url: str) -> dict[str, Any]:
    if not text or not text.strip():
        raise JSONParseError("", "Empty response body", url)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise JSONParseError(text, exc, url) from exc
    if not isinstance(data, dict):
        raise JSONParseError(json.dumps(data), "Response is not a valid object", url)
    return data


async def create_docs_fetcher(
    settings: Settings,
    client: httpx.AsyncClient,
) -> DocsFetcher:
    """Open the cache described by ``settings`` and wire it to ``client``."""
    cache = await PersistentCache.open(
        settings.cache.storage_path,
        max_size=settings.cache.max_size,
    )
    return DocsFetcher(
        HttpxTransport(client),
        cache,
        cache_ttl_ms=settings.cache.ttl_ms,
        request_timeout_ms=settings.fetcher.request_timeout_ms,
        base_url=settings.fetcher.base_url,
    )
