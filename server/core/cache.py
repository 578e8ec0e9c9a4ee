"""Solution cache store backed by the SQLite database.

SQLite is enough for a single-process deployment: one table keyed by
fingerprint, a fixed TTL, and an index on ``expires_at`` for sweeps.

The store is single-writer. Every mutation runs under one lock and inside
one transaction; reads run in a single session and only ever see committed
rows. A row that cannot be decoded is reported as ``CacheStorageError``
like any other storage failure.
"""

import asyncio
from typing import List, Optional, Union

import orjson
from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from constants import (
    CACHE_WARNING_THRESHOLD,
    EXPORT_SCHEMA_VERSION,
    RECENT_ENTRIES_LIMIT,
    SOLUTION_CACHE_TTL_MS,
    SUPPORTED_SCHEMA_VERSIONS,
)
from core.clock import Clock, now_ms
from core.database import Database
from core.exceptions import CacheStorageError, ImportFormatError
from core.logging import get_logger, log_cache_operation
from models.cache import SolutionCacheEntry
from models.solution import (
    CachedSolution,
    CacheExport,
    CacheStats,
    ImportResult,
    SolutionPayload,
    VehicleInfo,
)

logger = get_logger(__name__)

# Database unavailable (RuntimeError before startup) or unreachable
WRITE_ERRORS = (SQLAlchemyError, RuntimeError)
# Plus rows that no longer decode: bad JSON text or an invalid solution
READ_ERRORS = WRITE_ERRORS + (ValueError,)


def _to_model(row: SolutionCacheEntry) -> CachedSolution:
    return CachedSolution(
        key=row.key,
        solution=SolutionPayload.model_validate(row.solution),
        vehicle_info=VehicleInfo(
            brand=row.vehicle_brand,
            model=row.vehicle_model,
            year=row.vehicle_year,
        ),
        fault_code=row.fault_code,
        cached_at=row.cached_at,
        expires_at=row.expires_at,
    )


def _to_row(entry: CachedSolution) -> SolutionCacheEntry:
    return SolutionCacheEntry(
        key=entry.key,
        solution=entry.solution.model_dump(mode="json", by_alias=True),
        vehicle_brand=entry.vehicle_info.brand,
        vehicle_model=entry.vehicle_info.model,
        vehicle_year=entry.vehicle_info.year,
        fault_code=entry.fault_code,
        cached_at=entry.cached_at,
        expires_at=entry.expires_at,
    )


def _serialize(entry: CachedSolution) -> bytes:
    return orjson.dumps(entry.model_dump(mode="json", by_alias=True))


async def _replace(session, row: SolutionCacheEntry) -> None:
    # Delete-then-insert never loads the old row, so an undecodable one is overwritten
    await session.execute(delete(SolutionCacheEntry).where(SolutionCacheEntry.key == row.key))
    session.add(row)


class SolutionCacheStore:
    """Persistent key/value store for repair solutions with TTL semantics.

    Args:
        database: Started ``Database`` used as the storage backend
        clock: Callable returning epoch milliseconds
        ttl_ms: Lifetime of every entry, fixed at write time
        warning_threshold: Entry count at which stats report almost full
    """

    def __init__(
        self,
        database: Database,
        clock: Clock = now_ms,
        ttl_ms: int = SOLUTION_CACHE_TTL_MS,
        warning_threshold: int = CACHE_WARNING_THRESHOLD,
    ):
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        self.database = database
        self.clock = clock
        self.ttl_ms = ttl_ms
        self.warning_threshold = warning_threshold
        self._write_lock = asyncio.Lock()

    # =========================================================================
    # SINGLE-KEY OPERATIONS
    # =========================================================================

    async def get(self, key: str) -> Optional[CachedSolution]:
        """Return the live entry for ``key`` or None.

        Expired rows read as missing; the sweep removes them.

        Raises:
            CacheStorageError: The database could not be read
        """
        now = self.clock()
        entry = await self.peek(key)

        if entry is None:
            log_cache_operation(logger, "get", key, hit=False)
            return None

        if entry.is_expired(now):
            log_cache_operation(logger, "get", key, hit=False, expired=True)
            return None

        log_cache_operation(logger, "get", key, hit=True)
        return entry

    async def peek(self, key: str) -> Optional[CachedSolution]:
        """Return the stored entry for ``key`` whether or not it has expired.

        Raises:
            CacheStorageError: The database could not be read or the row
                could not be decoded
        """
        try:
            async with self.database.get_session() as session:
                row = await session.get(SolutionCacheEntry, key)
                return None if row is None else _to_model(row)
        except READ_ERRORS as e:
            logger.error("Cache get failed", key=key, error=str(e))
            raise CacheStorageError("get", str(e)) from e

    async def put(
        self,
        key: str,
        solution: SolutionPayload,
        vehicle_info: VehicleInfo,
        fault_code: str,
    ) -> CachedSolution:
        """Store ``solution`` under ``key``, replacing any previous entry.

        Raises:
            CacheStorageError: The database could not be written
        """
        now = self.clock()
        entry = CachedSolution(
            key=key,
            solution=solution,
            vehicle_info=vehicle_info,
            fault_code=fault_code,
            cached_at=now,
            expires_at=now + self.ttl_ms,
        )
        async with self._write_lock:
            try:
                async with self.database.get_session() as session:
                    await _replace(session, _to_row(entry))
                    await session.commit()
            except WRITE_ERRORS as e:
                logger.error("Cache put failed", key=key, error=str(e))
                raise CacheStorageError("put", str(e)) from e

        log_cache_operation(logger, "put", key, expires_at=entry.expires_at)
        return entry

    async def delete(self, key: str) -> bool:
        """Remove ``key``. Missing keys are not an error.

        Returns:
            True if a row was removed
        """
        stmt = delete(SolutionCacheEntry).where(SolutionCacheEntry.key == key)
        deleted = bool(await self._execute_delete("delete", stmt))
        log_cache_operation(logger, "delete", key, deleted=deleted)
        return deleted

    async def _execute_delete(self, operation: str, stmt) -> int:
        async with self._write_lock:
            try:
                async with self.database.get_session() as session:
                    result = await session.execute(stmt)
                    count = result.rowcount
                    await session.commit()
            except WRITE_ERRORS as e:
                logger.error("Cache delete failed", operation=operation, error=str(e))
                raise CacheStorageError(operation, str(e)) from e
        return count

    # =========================================================================
    # BULK OPERATIONS
    # =========================================================================

    async def clear_all(self) -> int:
        """Remove every entry. Returns the number of rows removed."""
        count = await self._execute_delete("clear", delete(SolutionCacheEntry))
        logger.info("Solution cache cleared", count=count)
        return count

    async def sweep_expired(self) -> int:
        """Remove every entry whose expiry has passed. Returns the count."""
        now = self.clock()
        stmt = delete(SolutionCacheEntry).where(SolutionCacheEntry.expires_at <= now)
        count = await self._execute_delete("sweep", stmt)
        if count > 0:
            logger.info("Swept expired cache entries", count=count)
        return count

    async def stats(self) -> CacheStats:
        """Entry counts, age range and an approximate serialized size."""
        now = self.clock()
        try:
            async with self.database.get_session() as session:
                result = await session.execute(select(SolutionCacheEntry))
                entries = [_to_model(row) for row in result.scalars().all()]
        except READ_ERRORS as e:
            logger.error("Cache stats failed", error=str(e))
            raise CacheStorageError("stats", str(e)) from e

        if not entries:
            return CacheStats(warning_threshold=self.warning_threshold)

        cached_at = [entry.cached_at for entry in entries]
        return CacheStats(
            total_entries=len(entries),
            expired_entries=sum(1 for entry in entries if entry.is_expired(now)),
            oldest_cached_at=min(cached_at),
            newest_cached_at=max(cached_at),
            approximate_size_bytes=sum(len(_serialize(entry)) for entry in entries),
            warning_threshold=self.warning_threshold,
        )

    async def list_entries(self, limit: int = RECENT_ENTRIES_LIMIT) -> List[CachedSolution]:
        """Most recently cached live entries, newest first."""
        return await self._live_entries(limit=limit, newest_first=True)

    async def _live_entries(self, limit: Optional[int] = None,
                            newest_first: bool = False) -> List[CachedSolution]:
        now = self.clock()
        order = SolutionCacheEntry.cached_at.desc() if newest_first else SolutionCacheEntry.cached_at
        stmt = select(SolutionCacheEntry).where(SolutionCacheEntry.expires_at > now).order_by(order)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self.database.get_session() as session:
                result = await session.execute(stmt)
                return [_to_model(row) for row in result.scalars().all()]
        except READ_ERRORS as e:
            logger.error("Cache listing failed", error=str(e))
            raise CacheStorageError("list", str(e)) from e

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    async def export_all(self) -> bytes:
        """Serialize every live entry into a versioned JSON document."""
        entries = await self._live_entries()
        export = CacheExport(
            schema_version=EXPORT_SCHEMA_VERSION,
            exported_at=self.clock(),
            total_entries=len(entries),
            entries=entries,
        )
        logger.info("Exported solution cache", count=len(entries))
        return orjson.dumps(export.model_dump(mode="json", by_alias=True))

    async def import_all(self, blob: Union[bytes, str]) -> ImportResult:
        """Load entries from an export document without clobbering live data.

        A key that already holds a live entry keeps it and the imported copy
        is counted as skipped. Parsing happens before any write, so a
        malformed blob leaves the store untouched.

        Raises:
            ImportFormatError: The blob is not a valid export
            CacheStorageError: The database rejected the write (rolled back)
        """
        entries = parse_export(blob)
        now = self.clock()
        result = ImportResult()
        seen = set()

        async with self._write_lock:
            try:
                async with self.database.get_session() as session:
                    live = await session.execute(
                        select(SolutionCacheEntry.key).where(SolutionCacheEntry.expires_at > now)
                    )
                    live_keys = set(live.scalars().all())

                    for entry in entries:
                        if entry.key in live_keys or entry.key in seen:
                            result.skipped += 1
                            continue
                        seen.add(entry.key)
                        await _replace(session, _to_row(entry))
                        result.imported += 1

                    await session.commit()
            except WRITE_ERRORS as e:
                logger.error("Cache import failed", error=str(e))
                raise CacheStorageError("import", str(e)) from e

        logger.info("Imported solution cache", imported=result.imported, skipped=result.skipped)
        return result


def parse_export(blob: Union[bytes, str]) -> List[CachedSolution]:
    """Parse and validate an export document.

    Accepts the versioned document written by ``export_all`` as well as a
    bare JSON array of entries.

    Raises:
        ImportFormatError: Invalid JSON, wrong shape or invalid entries
    """
    try:
        data = orjson.loads(blob)
    except orjson.JSONDecodeError as e:
        raise ImportFormatError(f"Invalid JSON: {e}") from e

    if isinstance(data, list):
        raw_entries = data
    elif isinstance(data, dict):
        version = data.get("schemaVersion")
        if not isinstance(version, int) or version not in SUPPORTED_SCHEMA_VERSIONS:
            raise ImportFormatError(f"Unsupported schemaVersion: {version!r}")
        raw_entries = data.get("entries")
        if not isinstance(raw_entries, list):
            raise ImportFormatError("'entries' must be a list")
    else:
        raise ImportFormatError("Export must be a JSON object or array")

    try:
        return [CachedSolution.model_validate(item) for item in raw_entries]
    except ValidationError as e:
        raise ImportFormatError(f"Invalid cache entry: {e.error_count()} validation error(s)") from e
