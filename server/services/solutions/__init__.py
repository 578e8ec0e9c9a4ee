"""Repair-solution resolution package.

Provides:
- Fingerprint derivation for (fault code, vehicle) pairs
- Remote resolver client
- Cache-aside resolution facade
- In-process hit/miss statistics
"""

from .keys import generate_cache_key, cache_key_for
from .resolver import BaseSolutionResolver, RemoteSolutionResolver
from .service import SolutionService
from .statistics import CacheStatistics

__all__ = [
    "generate_cache_key",
    "cache_key_for",
    "BaseSolutionResolver",
    "RemoteSolutionResolver",
    "SolutionService",
    "CacheStatistics",
]
