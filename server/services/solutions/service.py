"""Cache-aside resolution of repair solutions.

Flow per request:
    check cache -> hit: return cached solution
                -> miss: call resolver -> success: write cache, return
                                       -> failure: raise, nothing written

Cache failures degrade to a miss (reads) or are logged and ignored
(writes); resolver failures always reach the caller unchanged.
"""

import asyncio
import time
from typing import Optional

from constants import (
    OP_EXPIRED,
    OP_HIT,
    OP_MISS,
    OP_REFRESH,
    OP_RESOLVER_ERROR,
    OP_STORAGE_ERROR,
)
from core.cache import SolutionCacheStore
from core.exceptions import CacheStorageError
from core.logging import get_logger, log_execution_time
from models.solution import CachedSolution, ResolveResult, SolutionRequest
from .keys import cache_key_for
from .resolver import BaseSolutionResolver
from .statistics import CacheStatistics

logger = get_logger(__name__)


class SolutionService:
    """Resolution facade in front of the remote resolver."""

    def __init__(
        self,
        store: SolutionCacheStore,
        resolver: BaseSolutionResolver,
        statistics: Optional[CacheStatistics] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.statistics = statistics or CacheStatistics()
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> int:
        """Sweep expired entries. Safe to call any number of times.

        Returns:
            Number of entries swept, 0 if the sweep failed
        """
        async with self._init_lock:
            self._initialized = True
            return await self._sweep()

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if not self._initialized:
                self._initialized = True
                await self._sweep()

    async def _sweep(self) -> int:
        try:
            return await self.store.sweep_expired()
        except CacheStorageError as e:
            logger.warning("Startup cache sweep failed", error=str(e))
            return 0

    async def _cached(self, key: str) -> Optional[CachedSolution]:
        """Stored entry for ``key``, expired or not; None on a storage failure."""
        try:
            return await self.store.peek(key)
        except CacheStorageError as e:
            self.statistics.track(OP_STORAGE_ERROR, key)
            logger.warning("Cache read failed, falling back to resolver", key=key, error=str(e))
            return None

    async def resolve(self, request: SolutionRequest, force_refresh: bool = False) -> ResolveResult:
        """Return a solution for ``request``, from cache when possible.

        Args:
            request: Fault code, vehicle and problem description
            force_refresh: Skip the cache lookup and always call the resolver

        Raises:
            Whatever the resolver raises, unchanged
        """
        await self._ensure_initialized()
        key = cache_key_for(request)

        if force_refresh:
            self.statistics.track(OP_REFRESH, key)
        else:
            cached = await self._cached(key)
            if cached is None:
                self.statistics.track(OP_MISS, key)
            elif cached.is_expired(self.store.clock()):
                self.statistics.track(OP_EXPIRED, key)
            else:
                self.statistics.track(OP_HIT, key)
                return ResolveResult(solution=cached.solution, from_cache=True, cache_key=key)

        start = time.time()
        try:
            solution = await self.resolver.resolve(request)
        except Exception as e:
            self.statistics.track(OP_RESOLVER_ERROR, key)
            logger.error("Solution resolver failed", key=key, error=str(e))
            raise
        log_execution_time(logger, "resolve_solution", start, time.time(), cache_key=key)

        try:
            await self.store.put(key, solution, request.vehicle_info(), request.dtc_code)
        except CacheStorageError as e:
            self.statistics.track(OP_STORAGE_ERROR, key)
            logger.warning("Cache write failed, returning uncached solution", key=key, error=str(e))

        return ResolveResult(solution=solution, from_cache=False, cache_key=key)
