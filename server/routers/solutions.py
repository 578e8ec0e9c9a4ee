"""Repair-solution lookup routes."""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from core.container import container
from core.exceptions import ResolverError
from core.logging import get_logger
from models.solution import SolutionRequest
from services.solutions import SolutionService, generate_cache_key

logger = get_logger(__name__)
router = APIRouter(prefix="/api/solutions", tags=["solutions"])


class ResolveSolutionRequest(SolutionRequest):
    force_refresh: bool = False


@router.post("/resolve")
async def resolve_solution(
    request: ResolveSolutionRequest,
    service: SolutionService = Depends(lambda: container.solution_service())
):
    """Return a repair solution, served from cache when available."""
    lookup = SolutionRequest.model_validate(request.model_dump(exclude={"force_refresh"}))
    try:
        result = await service.resolve(lookup, force_refresh=request.force_refresh)
    except ResolverError as e:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"success": False, "error": str(e)}
        )
    return {"success": True, **result.model_dump(mode="json", by_alias=True)}


@router.get("/key")
async def get_cache_key(
    dtc_code: str = Query(alias="dtcCode"),
    vehicle_brand: str = Query(alias="vehicleBrand"),
    vehicle_model: str = Query(alias="vehicleModel"),
    vehicle_year: int = Query(alias="vehicleYear"),
):
    """Show the cache key a lookup would use."""
    return {"cacheKey": generate_cache_key(dtc_code, vehicle_brand, vehicle_model, vehicle_year)}
