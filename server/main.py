"""
FastAPI backend for the vehicle-diagnostics repair-solution cache.

Serves cache-aside solution lookups and the cache administration surface.
"""

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.exceptions import CacheStorageError
from core.logging import configure_logging, get_logger
from routers import cache, solutions

APP_VERSION = "1.0.0"

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting repair-solution cache service")

    await container.database().startup()

    # Drop whatever expired while the service was down
    swept = await container.solution_service().initialize()
    logger.info("Startup cache sweep finished", swept=swept)

    container.cleanup_service().start()

    logger.info("Services started successfully")
    yield

    container.cleanup_service().stop()
    await container.database().shutdown()
    logger.info("Services shutdown complete")


app = FastAPI(
    title="Repair Solution Cache",
    version=APP_VERSION,
    description="Cache-aside repair-solution lookups with TTL, stats and backup/restore",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )


app.add_middleware(CatchAllExceptionsMiddleware)

# Add CORS middleware (must be AFTER exception middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(solutions.router)
app.include_router(cache.router)


@app.get("/health")
async def health_check():
    """Service health with a cache summary."""
    try:
        stats = await container.cache_store().stats()
        cache_status = {"available": True, "totalEntries": stats.total_entries}
    except CacheStorageError as e:
        cache_status = {"available": False, "error": str(e)}

    return {
        "status": "OK",
        "service": "solution-cache",
        "version": APP_VERSION,
        "environment": "development" if settings.debug else "production",
        "cache": cache_status,
        "scheduledCleanup": container.scheduler().running,
        "timestamp": datetime.now().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting repair-solution cache service",
                host=settings.host, port=settings.port, debug=settings.debug)
    # Single worker: the cache store is single-process
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1
    )
