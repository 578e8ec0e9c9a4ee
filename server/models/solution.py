"""Pydantic v2 domain models for repair solutions and the cache surface.

All models speak camelCase on the wire (resolver payloads, export files and
HTTP responses) and snake_case in Python.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SolutionPayload(CamelModel):
    """Repair solution as produced by the remote resolver.

    The cache never inspects these fields. Unknown fields sent by newer
    resolvers are kept so they survive a cache round trip.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    title: Optional[str] = None
    description: Optional[str] = None
    steps: List[str] = Field(default_factory=list)
    estimated_time: Optional[str] = None
    estimated_cost: Optional[str] = None
    difficulty: Optional[int] = None
    tools: List[str] = Field(default_factory=list)
    parts: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    professional_recommended: bool = False
    source_url: Optional[str] = None


class VehicleInfo(CamelModel):
    """Vehicle context kept alongside a cached solution for display."""
    brand: str
    model: str
    year: int


class SolutionRequest(CamelModel):
    """Request shape of the remote resolver (fetch-solution)."""
    dtc_code: str
    vehicle_brand: str
    vehicle_model: str
    vehicle_year: int
    problem_description: str = ""

    def vehicle_info(self) -> VehicleInfo:
        return VehicleInfo(brand=self.vehicle_brand, model=self.vehicle_model, year=self.vehicle_year)


class CachedSolution(CamelModel):
    """One cache entry, also the unit of the export format."""
    key: str = Field(min_length=1)
    solution: SolutionPayload
    vehicle_info: VehicleInfo
    fault_code: str
    cached_at: int
    expires_at: int

    @model_validator(mode="after")
    def check_expiry_after_creation(self):
        if self.expires_at <= self.cached_at:
            raise ValueError("expiresAt must be later than cachedAt")
        return self

    def is_expired(self, now: int) -> bool:
        return self.expires_at <= now


class CacheExport(CamelModel):
    """Versioned snapshot produced by export and accepted by import."""
    schema_version: int
    exported_at: int
    total_entries: int
    entries: List[CachedSolution]


class ImportResult(CamelModel):
    imported: int = 0
    skipped: int = 0


class ResolveResult(CamelModel):
    solution: SolutionPayload
    from_cache: bool
    cache_key: str


def format_size(size_bytes: int) -> str:
    """Human readable size, KB below one megabyte and MB above."""
    if size_bytes > 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    return f"{size_bytes / 1024:.2f} KB"


class CacheStats(CamelModel):
    """Store-level statistics for the admin panel."""
    total_entries: int = 0
    expired_entries: int = 0
    oldest_cached_at: Optional[int] = None
    newest_cached_at: Optional[int] = None
    approximate_size_bytes: int = 0
    warning_threshold: int

    @computed_field(alias="totalSize")
    @property
    def total_size(self) -> str:
        if self.total_entries == 0:
            return "0 KB"
        return format_size(self.approximate_size_bytes)

    @computed_field(alias="isAlmostFull")
    @property
    def is_almost_full(self) -> bool:
        return self.total_entries >= self.warning_threshold
