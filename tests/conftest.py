import os
from contextlib import asynccontextmanager

# Keep the app module from touching ./data or starting the scheduler on import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CACHE_CLEANUP_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from constants import SOLUTION_CACHE_TTL_MS
from core.cache import SolutionCacheStore
from core.config import Settings
from core.database import Database
from models.solution import SolutionPayload, SolutionRequest, VehicleInfo
from services.solutions import BaseSolutionResolver

DAY_MS = 24 * 60 * 60 * 1000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    def advance_days(self, days: float) -> None:
        self.advance(int(days * DAY_MS))


class FakeResolver(BaseSolutionResolver):
    """Records every call; returns a fixed solution or raises a fixed error."""

    def __init__(self, solution: SolutionPayload = None, error: Exception = None):
        self.solution = solution
        self.error = error
        self.calls = []

    async def resolve(self, request: SolutionRequest) -> SolutionPayload:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self.solution


class BrokenDatabase:
    """Storage backend whose every session fails."""

    @asynccontextmanager
    async def get_session(self):
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))
        yield


async def insert_raw_row(store: SolutionCacheStore, key: str, solution_json: str, expires_in_ms: int = DAY_MS) -> None:
    """Write a row with SQL, bypassing model validation."""
    now = store.clock()
    async with store.database.get_session() as session:
        await session.execute(
            text(
                "INSERT INTO solution_cache "
                "(\"key\", solution, vehicle_brand, vehicle_model, vehicle_year, fault_code, cached_at, expires_at) "
                "VALUES (:key, :solution, 'VW', 'Golf', 2019, 'P0171', :cached_at, :expires_at)"
            ),
            {"key": key, "solution": solution_json, "cached_at": now, "expires_at": now + expires_in_ms},
        )
        await session.commit()


def make_settings(tmp_path, name: str = "cache.db", **overrides) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / name}",
        cache_cleanup_enabled=False,
        **overrides
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.startup()
    yield db
    await db.shutdown()


@pytest_asyncio.fixture
async def store(database, clock):
    return SolutionCacheStore(database, clock=clock)


@pytest_asyncio.fixture
async def make_store(tmp_path, clock):
    """Factory for extra stores, each on its own database file."""
    databases = []

    async def _make(name: str) -> SolutionCacheStore:
        db = Database(make_settings(tmp_path, name=name))
        await db.startup()
        databases.append(db)
        return SolutionCacheStore(db, clock=clock)

    yield _make
    for db in databases:
        await db.shutdown()


@pytest.fixture
def broken_store(clock):
    return SolutionCacheStore(BrokenDatabase(), clock=clock)


@pytest.fixture
def solution():
    return SolutionPayload(
        title="Replace upstream oxygen sensor",
        description="Lean condition reported by bank 1",
        steps=["Disconnect battery", "Remove sensor", "Install new sensor"],
        estimated_time="1h",
        estimated_cost="$120 - $250",
        difficulty=2,
        tools=["O2 sensor socket"],
        parts=["Oxygen sensor"],
        warnings=["Exhaust may be hot"],
        professional_recommended=False,
        source_url="https://example.com/golf-o2-sensor",
    )


@pytest.fixture
def vehicle():
    return VehicleInfo(brand="VW", model="Golf", year=2019)


@pytest.fixture
def request_p0171():
    return SolutionRequest(
        dtc_code="P0171",
        vehicle_brand="VW",
        vehicle_model="Golf",
        vehicle_year=2019,
        problem_description="System too lean (bank 1)",
    )


@pytest.fixture
def resolver(solution):
    return FakeResolver(solution=solution)


@pytest.fixture
def ttl_ms():
    return SOLUTION_CACHE_TTL_MS
