"""SQLite cache for rustdoc JSON documents with TTL expiry and LRU eviction.

Storage operations catch ``aiosqlite.Error`` (and the ``ValueError``
aiosqlite raises on a closed connection) internally and degrade gracefully.
Read failures are reported as a miss, so the caller falls through to the
network. Write failures are logged and ignored, and the fetched document is
still returned. Admin reads fall back to empty results. Errors are logged
with ``exc_info=True`` so they remain observable via stderr.

The ad-hoc ``query`` surface is the exception: it exists for debugging and
reports rejected or failing statements as ``CacheValidationError``.
"""

from __future__ import annotations

import asyncio
import json
import time
from contextlib import suppress
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite
import sqlparse
import structlog

from docsrs_mcp.errors import CacheValidationError
from docsrs_mcp.models.cache import CacheEntryInfo, CacheLookup, CacheStats

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger()

MEMORY_DB = ":memory:"
DEFAULT_MAX_QUERY_ROWS = 1000

_CREATE_ENTRIES_TABLE = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key           TEXT PRIMARY KEY,
    value         TEXT NOT NULL,
    stored_at     INTEGER NOT NULL,
    ttl           INTEGER NOT NULL,
    last_accessed INTEGER NOT NULL,
    size          INTEGER NOT NULL DEFAULT 0
)
"""

_CREATE_ACCESS_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_entries_last_accessed ON cache_entries(last_accessed)"
)
_CREATE_STORED_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_entries_stored_at ON cache_entries(stored_at)"
)


def _to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=UTC)


def validate_read_only(sql: str) -> str:
    """Return ``sql`` stripped if it is a single SELECT statement.

    The statement kind is taken from sqlparse's token stream, not from a
    string prefix, so leading comments, CTEs and trailing statements are all
    accounted for. Raises CacheValidationError otherwise.
    """
    if not sql or not sql.strip():
        raise CacheValidationError("Empty query")

    statements = [stmt for stmt in sqlparse.parse(sql) if str(stmt).strip(" \t\r\n;")]
    if len(statements) != 1:
        raise CacheValidationError(
            f"Exactly one statement is allowed, got {len(statements)}"
        )

    statement_type = statements[0].get_type()
    if statement_type != "SELECT":
        raise CacheValidationError(
            f"Only SELECT queries are allowed, got {statement_type or 'unrecognised statement'}"
        )
    return sql.strip()


class PersistentCache:
    """SQLite-backed document cache implementing CacheProtocol.

    Every operation that writes to the shared connection (lookups touch
    ``last_accessed``) runs under one asyncio lock. ``query`` holds the same
    lock while ``PRAGMA query_only`` is on, so no write ever sees it.
    """

    def __init__(
        self,
        db: aiosqlite.Connection,
        *,
        max_size: int = 100,
        db_path: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self._db = db
        self._max_size = max_size
        self._db_path = db_path
        self._clock = clock
        self._lock = asyncio.Lock()
        self._closed = False
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expired = 0

    @classmethod
    async def open(
        cls,
        db_path: str | Path | None = None,
        *,
        max_size: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> PersistentCache:
        """Connect to ``db_path`` (in-memory when None) and create the schema."""
        if db_path is None or str(db_path) == MEMORY_DB:
            target = MEMORY_DB
            path_str = None
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = path_str = str(path)

        db = await aiosqlite.connect(target)
        cache = cls(db, max_size=max_size, db_path=path_str, clock=clock)
        await cache.init_db()
        log.info("cache_opened", db_path=path_str or MEMORY_DB, max_size=max_size)
        return cache

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        if self._db_path is not None:
            await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_ENTRIES_TABLE)
        await self._db.execute(_CREATE_ACCESS_INDEX)
        await self._db.execute(_CREATE_STORED_INDEX)
        await self._db.commit()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def persistent(self) -> bool:
        return self._db_path is not None

    # ------------------------------------------------------------------
    # Lookups and writes
    # ------------------------------------------------------------------

    async def get(self, key: str) -> CacheLookup:
        """Return the cached document for ``key``.

        Expired entries are deleted and reported as a miss. Read failures and
        undecodable rows are also reported as a miss.
        """
        async with self._lock:
            try:
                cursor = await self._db.execute(
                    "SELECT value, stored_at, ttl FROM cache_entries WHERE key = ?",
                    (key,),
                )
                row = await cursor.fetchone()
                if row is None:
                    self._misses += 1
                    return CacheLookup(hit=False)

                now = self._now_ms()
                if now > row[1] + row[2]:
                    await self._db.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                    await self._db.commit()
                    self._expired += 1
                    self._misses += 1
                    log.debug("cache_entry_expired", key=key)
                    return CacheLookup(hit=False)

                value = json.loads(row[0])
                await self._db.execute(
                    "UPDATE cache_entries SET last_accessed = ? WHERE key = ?",
                    (now, key),
                )
                await self._db.commit()
            except (aiosqlite.Error, ValueError):
                log.warning("cache_read_error", key=key, exc_info=True)
                self._misses += 1
                return CacheLookup(hit=False)

        self._hits += 1
        return CacheLookup(hit=True, value=value)

    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        """Insert or overwrite ``key``. Non-fatal on failure.

        When the insert would push the entry count past ``max_size``, the
        least recently accessed entries are evicted first.
        """
        try:
            payload = json.dumps(value, separators=(",", ":"))
        except (TypeError, ValueError):
            log.warning("cache_write_error", key=key, reason="unserialisable", exc_info=True)
            return

        async with self._lock:
            try:
                now = self._now_ms()
                cursor = await self._db.execute(
                    "SELECT 1 FROM cache_entries WHERE key = ?", (key,)
                )
                exists = await cursor.fetchone() is not None

                if not exists:
                    cursor = await self._db.execute("SELECT COUNT(*) FROM cache_entries")
                    (count,) = await cursor.fetchone()
                    overflow = count + 1 - self._max_size
                    if overflow > 0:
                        await self._evict(overflow)

                await self._db.execute(
                    "INSERT OR REPLACE INTO cache_entries "
                    "(key, value, stored_at, ttl, last_accessed, size) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (key, payload, now, ttl_ms, now, len(payload)),
                )
                await self._db.commit()
            except (aiosqlite.Error, ValueError):
                log.warning("cache_write_error", key=key, exc_info=True)
                with suppress(aiosqlite.Error, ValueError):
                    await self._db.rollback()

    async def _evict(self, count: int) -> None:
        cursor = await self._db.execute(
            "SELECT key FROM cache_entries ORDER BY last_accessed ASC, stored_at ASC LIMIT ?",
            (count,),
        )
        victims = [row[0] for row in await cursor.fetchall()]
        await self._db.executemany(
            "DELETE FROM cache_entries WHERE key = ?", [(victim,) for victim in victims]
        )
        self._evictions += len(victims)
        log.info("cache_evicted", count=len(victims), keys=victims)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def clear(self) -> None:
        """Delete every entry. The store stays open and usable."""
        async with self._lock:
            try:
                cursor = await self._db.execute("DELETE FROM cache_entries")
                deleted = cursor.rowcount
                await self._db.commit()
                log.info("cache_cleared", deleted=deleted)
            except (aiosqlite.Error, ValueError):
                log.warning("cache_clear_error", exc_info=True)

    async def cleanup_expired(self) -> int:
        """Delete all expired entries and return how many went. Non-fatal on failure."""
        async with self._lock:
            try:
                cursor = await self._db.execute(
                    "DELETE FROM cache_entries WHERE stored_at + ttl < ?",
                    (self._now_ms(),),
                )
                deleted = cursor.rowcount
                await self._db.commit()
            except (aiosqlite.Error, ValueError):
                log.warning("cache_cleanup_error", exc_info=True)
                return 0
        self._expired += deleted
        log.info("cache_cleanup_complete", deleted=deleted)
        return deleted

    async def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._db.close()
        log.info("cache_closed", db_path=self._db_path or MEMORY_DB)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def stats(self) -> CacheStats:
        """Snapshot of counters. Does not touch access times or counters."""
        entry_count = 0
        total_size = 0
        try:
            cursor = await self._db.execute(
                "SELECT COUNT(*), COALESCE(SUM(size), 0) FROM cache_entries"
            )
            entry_count, total_size = await cursor.fetchone()
        except (aiosqlite.Error, ValueError):
            log.warning("cache_stats_error", exc_info=True)

        lookups = self._hits + self._misses
        return CacheStats(
            entry_count=entry_count,
            max_size=self._max_size,
            hit_count=self._hits,
            miss_count=self._misses,
            hit_rate=self._hits / lookups if lookups else 0.0,
            eviction_count=self._evictions,
            expired_count=self._expired,
            total_size_bytes=total_size,
            persistent=self.persistent,
            db_path=self._db_path,
        )

    async def list_entries(self, limit: int = 20, offset: int = 0) -> list[CacheEntryInfo]:
        """Page through entry metadata, newest first, ties broken by key."""
        if limit < 1:
            raise CacheValidationError(f"limit must be at least 1, got {limit}")
        if offset < 0:
            raise CacheValidationError(f"offset must not be negative, got {offset}")

        try:
            cursor = await self._db.execute(
                "SELECT key, stored_at, ttl, last_accessed, size FROM cache_entries "
                "ORDER BY stored_at DESC, key ASC LIMIT ? OFFSET ?",
                (limit, offset),
            )
            rows = await cursor.fetchall()
        except (aiosqlite.Error, ValueError):
            log.warning("cache_list_error", exc_info=True)
            return []

        now = self._now_ms()
        return [
            CacheEntryInfo(
                key=key,
                stored_at=_to_datetime(stored_at),
                ttl_ms=ttl,
                expires_at=_to_datetime(stored_at + ttl),
                last_accessed=_to_datetime(last_accessed),
                size_bytes=size,
                expired=now > stored_at + ttl,
            )
            for key, stored_at, ttl, last_accessed, size in rows
        ]

    async def query(self, sql: str, *, max_rows: int = DEFAULT_MAX_QUERY_ROWS) -> list[dict]:
        """Run a read-only statement against the cache database.

        The statement is validated before the database is touched and then
        executed with ``PRAGMA query_only`` enabled.
        """
        statement = validate_read_only(sql)

        async with self._lock:
            try:
                await self._db.execute("PRAGMA query_only = ON")
                try:
                    cursor = await self._db.execute(statement)
                    rows = await cursor.fetchmany(max_rows)
                    columns = [col[0] for col in cursor.description or ()]
                    await cursor.close()
                finally:
                    await self._db.execute("PRAGMA query_only = OFF")
            except (aiosqlite.Error, ValueError) as exc:
                log.warning("cache_query_error", sql=statement, error=str(exc))
                raise CacheValidationError(f"Query failed: {exc}") from exc

        log.info("cache_query_complete", row_count=len(rows))
        return [dict(zip(columns, row, strict=True)) for row in rows]
