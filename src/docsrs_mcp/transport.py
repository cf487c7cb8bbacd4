"""httpx-backed transport for docs.rs requests.

The fetcher receives a transport via constructor injection; the lifespan owns
the underlying ``httpx.AsyncClient``. Bodies are read with ``aiter_raw`` so
httpx never applies its own content decoding: zstd and friends are decoded in
``docsrs_mcp.decompression`` where failures map onto DecompressionError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from docsrs_mcp import __version__
from docsrs_mcp.models.fetch import TransportResponse

if TYPE_CHECKING:
    from collections.abc import Mapping

    from docsrs_mcp.config import FetcherSettings

log = structlog.get_logger()

DEFAULT_USER_AGENT = f"docsrs-mcp/{__version__}"


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup.

    The client timeout is a backstop only; the fetcher enforces its own
    deadline around the whole request.
    """
    user_agent = settings.user_agent if settings is not None else DEFAULT_USER_AGENT
    timeout_s = settings.request_timeout_ms / 1000 if settings is not None else 30.0
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout_s),
        headers={"User-Agent": user_agent},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


class HttpxTransport:
    """TransportProtocol implementation over a shared ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def get(self, url: str, headers: Mapping[str, str]) -> TransportResponse:
        try:
            async with self._client.stream("GET", url, headers=dict(headers)) as response:
                content = b"".join([chunk async for chunk in response.aiter_raw()])
        except httpx.TimeoutException as exc:
            raise TimeoutError(str(exc) or "httpx timeout") from exc

        log.debug(
            "transport_response",
            url=url,
            status_code=response.status_code,
            content_length=len(content),
        )
        return TransportResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers={name.lower(): value for name, value in response.headers.items()},
            content=content,
        )
