"""Tool handler for lookup_crate_docs.

Receives AppState, validates input, delegates to DocsFetcher, and returns a
structured dict. No MCP or FastMCP imports; server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from docsrs_mcp.errors import InvalidInputError
from docsrs_mcp.models.tools import LookupCrateDocsInput, LookupCrateDocsOutput

if TYPE_CHECKING:
    from docsrs_mcp.state import AppState


async def handle(
    crate_name: str,
    state: AppState,
    version: str | None = None,
    target: str | None = None,
    format_version: int | None = None,
) -> dict:
    """Handle a lookup_crate_docs tool call."""
    log = structlog.get_logger().bind(tool="lookup_crate_docs", crate_name=crate_name)
    log.info("handler_called")

    try:
        validated = LookupCrateDocsInput(
            crate_name=crate_name,
            version=version,
            target=target,
            format_version=format_version,
        )
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc

    if state.fetcher is None:
        raise RuntimeError("DocsFetcher not initialized")

    result = await state.fetcher.fetch_crate_json(
        validated.crate_name,
        validated.version,
        validated.target,
        validated.format_version,
    )
    log.info("lookup_complete", from_cache=result.from_cache)

    output = LookupCrateDocsOutput(
        crate_name=validated.crate_name,
        version=validated.version or "latest",
        url=state.fetcher.build_url(
            validated.crate_name,
            validated.version,
            validated.target,
            validated.format_version,
        ),
        from_cache=result.from_cache,
        data=result.data,
    )
    return output.model_dump(mode="json")
