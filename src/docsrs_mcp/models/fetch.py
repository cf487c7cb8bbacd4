from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class TransportResponse(BaseModel):
    """Raw HTTP response as seen by the fetcher, body still content-encoded."""

    status_code: int
    reason_phrase: str = ""
    headers: dict[str, str] = {}  # Lower-cased header names
    content: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class FetchResult(BaseModel):
    """Rustdoc JSON document plus whether it was served from the cache."""

    data: dict[str, Any]
    from_cache: bool
