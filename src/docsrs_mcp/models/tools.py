from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

_CRATE_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_-]*$"


class LookupCrateDocsInput(BaseModel):
    crate_name: str = Field(min_length=1, max_length=64, pattern=_CRATE_NAME_PATTERN)
    version: str | None = Field(default=None, max_length=128)
    target: str | None = Field(default=None, max_length=128)
    format_version: int | None = Field(default=None, ge=0)

    @field_validator("version", "target")
    @classmethod
    def validate_path_segment(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if "/" in v or ".." in v:
            raise ValueError(f"Invalid URL path segment: {v!r}")
        return v


class LookupCrateDocsOutput(BaseModel):
    crate_name: str
    version: str
    url: str
    from_cache: bool
    data: dict[str, Any]


class ListCacheEntriesInput(BaseModel):
    limit: int = Field(default=20, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)


class QueryCacheInput(BaseModel):
    sql: str = Field(min_length=1, max_length=10_000)
