from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class CacheLookup(BaseModel):
    """Result of a single cache read. ``value`` is only meaningful on a hit."""

    hit: bool
    value: Any = None


class CacheEntryInfo(BaseModel):
    """Metadata for one cached document, as listed by ``list_entries``."""

    key: str
    stored_at: datetime
    ttl_ms: int
    expires_at: datetime
    last_accessed: datetime
    size_bytes: int  # Length of the serialised JSON document
    expired: bool = False


class CacheStats(BaseModel):
    """Point-in-time snapshot of cache counters."""

    entry_count: int
    max_size: int
    hit_count: int
    miss_count: int
    hit_rate: float  # 0.0–1.0, 0.0 before the first lookup
    eviction_count: int
    expired_count: int
    total_size_bytes: int
    persistent: bool
    db_path: str | None = None
