"""In-process hit/miss tracking for the solution cache."""

from collections import Counter
from typing import Any, Dict, Optional

from constants import CACHE_OPERATIONS, LOOKUP_OPERATIONS, OP_HIT
from core.logging import get_logger

logger = get_logger(__name__)


class CacheStatistics:
    """Counts cache operations since start (or the last reset)."""

    def __init__(self) -> None:
        self._counts: Counter = Counter()

    def track(self, operation: str, key: Optional[str] = None) -> None:
        if operation not in CACHE_OPERATIONS:
            raise ValueError(f"Unknown cache operation: {operation}")
        self._counts[operation] += 1
        logger.debug("Cache statistic", operation=operation, cache_key=key)

    def count(self, operation: str) -> int:
        return self._counts[operation]

    @property
    def hit_rate_percent(self) -> float:
        lookups = sum(self._counts[op] for op in LOOKUP_OPERATIONS)
        if lookups == 0:
            return 0.0
        return round(self._counts[OP_HIT] / lookups * 100, 2)

    def snapshot(self) -> Dict[str, Any]:
        counts = {op: self._counts[op] for op in sorted(CACHE_OPERATIONS)}
        return {"operations": counts, "hitRatePercent": self.hit_rate_percent}

    def reset(self) -> None:
        self._counts.clear()
