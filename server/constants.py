"""Centralized constants for the repair-solution cache.

Single source of truth for TTLs, export format versions and statistics
operation names shared by the store, the facade and the admin routes.
"""

from typing import FrozenSet

# =============================================================================
# SOLUTION CACHE
# =============================================================================

SOLUTION_CACHE_TTL_DAYS = 30
SOLUTION_CACHE_TTL_MS = SOLUTION_CACHE_TTL_DAYS * 24 * 60 * 60 * 1000

# Stats panel warns once the cache holds this many entries
CACHE_WARNING_THRESHOLD = 80

# Default number of entries returned by the "recent entries" listing
RECENT_ENTRIES_LIMIT = 20

# =============================================================================
# EXPORT FORMAT
# =============================================================================

EXPORT_SCHEMA_VERSION = 1
SUPPORTED_SCHEMA_VERSIONS: FrozenSet[int] = frozenset([1])

# =============================================================================
# STATISTICS OPERATIONS
# =============================================================================

OP_HIT = 'hit'
OP_MISS = 'miss'
OP_EXPIRED = 'expired'
OP_REFRESH = 'refresh'
OP_RESOLVER_ERROR = 'resolver_error'
OP_STORAGE_ERROR = 'storage_error'
OP_CLEANUP = 'cleanup'

CACHE_OPERATIONS: FrozenSet[str] = frozenset([
    OP_HIT,
    OP_MISS,
    OP_EXPIRED,
    OP_REFRESH,
    OP_RESOLVER_ERROR,
    OP_STORAGE_ERROR,
    OP_CLEANUP,
])

# Lookups that count towards the hit rate; an expired entry is a failed lookup
LOOKUP_OPERATIONS: FrozenSet[str] = frozenset([OP_HIT, OP_MISS, OP_EXPIRED, OP_REFRESH])

# =============================================================================
# SCHEDULED CLEANUP
# =============================================================================

CLEANUP_JOB_ID = 'solution_cache_cleanup'

# Weekly, Sunday 03:00 UTC
DEFAULT_CLEANUP_CRON = '0 3 * * sun'
