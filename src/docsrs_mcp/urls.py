"""docs.rs rustdoc JSON URL construction."""

from __future__ import annotations

DOCS_RS_BASE_URL = "https://docs.rs"


def build_json_url(
    crate_name: str,
    version: str | None = None,
    target: str | None = None,
    format_version: int | None = None,
    *,
    base_url: str = DOCS_RS_BASE_URL,
) -> str:
    """Return ``<base>/crate/<name>/<version>/[<target>/]json[/<format_version>]``.

    The URL doubles as the cache key, so the output must be deterministic for
    a given argument tuple. ``version`` defaults to ``latest``; a
    ``format_version`` of 0 is treated as absent.
    """
    if not crate_name:
        raise ValueError("crate_name must be a non-empty string")

    parts = [base_url.rstrip("/"), "crate", crate_name, version or "latest"]
    if target:
        parts.append(target)
    parts.append("json")
    if format_version:
        parts.append(str(format_version))
    return "/".join(parts)
