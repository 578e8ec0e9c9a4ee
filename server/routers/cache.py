"""Solution cache administration routes."""

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from constants import RECENT_ENTRIES_LIMIT
from core.cache import SolutionCacheStore
from core.cleanup import CleanupService
from core.container import container
from core.exceptions import CacheStorageError, ImportFormatError
from core.logging import get_logger
from services.solutions import CacheStatistics

logger = get_logger(__name__)
router = APIRouter(prefix="/api/cache", tags=["cache"])


def _storage_unavailable(e: CacheStorageError) -> JSONResponse:
    logger.error("Cache storage unavailable", error=str(e))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "error": str(e)}
    )


@router.get("/stats")
async def get_stats(
    store: SolutionCacheStore = Depends(lambda: container.cache_store()),
    statistics: CacheStatistics = Depends(lambda: container.statistics())
):
    """Entry counts, size and hit/miss counters."""
    try:
        stats = await store.stats()
    except CacheStorageError as e:
        return _storage_unavailable(e)
    return {
        "success": True,
        "data": {
            **stats.model_dump(mode="json", by_alias=True),
            "statistics": statistics.snapshot(),
        }
    }


@router.post("/clear")
async def clear_cache(
    store: SolutionCacheStore = Depends(lambda: container.cache_store())
):
    """Remove every cached solution."""
    try:
        deleted = await store.clear_all()
    except CacheStorageError as e:
        return _storage_unavailable(e)
    return {"success": True, "deleted": deleted}


@router.post("/clean-expired")
async def clean_expired(
    store: SolutionCacheStore = Depends(lambda: container.cache_store())
):
    """Remove expired solutions."""
    try:
        deleted = await store.sweep_expired()
    except CacheStorageError as e:
        return _storage_unavailable(e)
    return {"success": True, "deleted": deleted}


@router.get("/entries")
async def list_entries(
    limit: int = Query(default=RECENT_ENTRIES_LIMIT, ge=1, le=500),
    store: SolutionCacheStore = Depends(lambda: container.cache_store())
):
    """Most recently cached solutions."""
    try:
        entries = await store.list_entries(limit=limit)
    except CacheStorageError as e:
        return _storage_unavailable(e)
    return {
        "success": True,
        "entries": [entry.model_dump(mode="json", by_alias=True) for entry in entries]
    }


@router.get("/entries/{key}")
async def get_entry(
    key: str,
    store: SolutionCacheStore = Depends(lambda: container.cache_store())
):
    """Single cached solution by key."""
    try:
        entry = await store.get(key)
    except CacheStorageError as e:
        return _storage_unavailable(e)
    if entry is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": False, "error": "Entry not found"}
        )
    return {"success": True, "entry": entry.model_dump(mode="json", by_alias=True)}


@router.delete("/entries/{key}")
async def delete_entry(
    key: str,
    store: SolutionCacheStore = Depends(lambda: container.cache_store())
):
    """Delete one cached solution. Deleting a missing key succeeds."""
    try:
        deleted = await store.delete(key)
    except CacheStorageError as e:
        return _storage_unavailable(e)
    return {"success": True, "deleted": deleted}


@router.get("/export")
async def export_cache(
    store: SolutionCacheStore = Depends(lambda: container.cache_store())
):
    """Download every live entry as a JSON backup."""
    try:
        blob = await store.export_all()
    except CacheStorageError as e:
        return _storage_unavailable(e)
    return Response(
        content=blob,
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="solution-cache-export.json"'}
    )


@router.post("/import")
async def import_cache(
    request: Request,
    store: SolutionCacheStore = Depends(lambda: container.cache_store())
):
    """Restore a JSON backup. Live entries are never overwritten."""
    blob = await request.body()
    try:
        result = await store.import_all(blob)
    except ImportFormatError as e:
        logger.warning("Rejected cache import", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(e)}
        )
    except CacheStorageError as e:
        return _storage_unavailable(e)
    return {"success": True, **result.model_dump()}


@router.get("/schedule")
async def get_schedule(
    cleanup: CleanupService = Depends(lambda: container.cleanup_service())
):
    """Scheduled cleanup configuration and last run."""
    return {"success": True, "data": cleanup.schedule_info()}


@router.post("/run-scheduled-cleanup")
async def run_scheduled_cleanup(
    cleanup: CleanupService = Depends(lambda: container.cleanup_service())
):
    """Run the scheduled cleanup now."""
    try:
        result = await cleanup.run_once()
    except CacheStorageError as e:
        return _storage_unavailable(e)
    return {"success": True, "data": result}
