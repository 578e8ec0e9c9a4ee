"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from constants import SOLUTION_CACHE_TTL_MS
from core.config import Settings
from core.database import Database
from core.cache import SolutionCacheStore
from core.cleanup import CleanupService
from core.clock import now_ms
from services.scheduler import SweepScheduler
from services.solutions import CacheStatistics, RemoteSolutionResolver, SolutionService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Storage backend for the solution cache
    database = providers.Singleton(
        Database,
        settings=settings
    )

    clock = providers.Object(now_ms)

    cache_store = providers.Singleton(
        SolutionCacheStore,
        database=database,
        clock=clock,
        ttl_ms=SOLUTION_CACHE_TTL_MS,
        warning_threshold=settings.provided.cache_warning_threshold,
    )

    statistics = providers.Singleton(
        CacheStatistics
    )

    resolver = providers.Singleton(
        RemoteSolutionResolver,
        base_url=settings.provided.resolver_url,
        timeout=settings.provided.resolver_timeout,
        api_key=settings.provided.resolver_api_key,
    )

    # Resolution facade (cache-aside in front of the resolver)
    solution_service = providers.Singleton(
        SolutionService,
        store=cache_store,
        resolver=resolver,
        statistics=statistics,
    )

    scheduler = providers.Singleton(
        SweepScheduler
    )

    cleanup_service = providers.Singleton(
        CleanupService,
        store=cache_store,
        statistics=statistics,
        settings=settings,
        scheduler=scheduler,
    )


# Global container instance
container = Container()
