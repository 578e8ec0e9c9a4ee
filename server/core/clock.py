"""Wall-clock source for cache timestamps (epoch milliseconds)."""

import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)
