"""SQLite-backed table for cached repair solutions.

One row per fingerprint. Timestamps are epoch milliseconds so rows map
one-to-one onto the export format.
"""

from typing import Any, Dict
from sqlmodel import SQLModel, Field, Column, JSON


class SolutionCacheEntry(SQLModel, table=True):
    """Cached solution with fixed expiration.

    The solution document is stored as opaque JSON; the vehicle and fault
    code columns are denormalized for display and audit only.
    """

    __tablename__ = "solution_cache"

    key: str = Field(primary_key=True, max_length=512)
    solution: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    vehicle_brand: str = Field(default="", max_length=255)
    vehicle_model: str = Field(default="", max_length=255)
    vehicle_year: int = Field(default=0)
    fault_code: str = Field(default="", max_length=64, index=True)
    cached_at: int = Field(index=True)
    expires_at: int = Field(index=True)  # Sweep walks this index
