"""Fixed-window rate limiter keyed by (category, time bucket).

Counts live on the instance, not in module state, so every component that
needs a limit gets its own injected limiter and tests can drive the clock.
"""

import time
from collections.abc import Callable

from tokentrader.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Allow at most ``limits[category]`` acquisitions per window.

    A bucket is ``int(now // window_seconds)``; counts for buckets older than
    the current one are pruned on every acquisition.

    Args:
        limits: Maximum acquisitions per window for each category. Unknown
            categories are not limited.
        window_seconds: Bucket width (default one hour).
        clock: Time source, injectable for tests.
    """

    def __init__(
        self,
        limits: dict[str, int],
        window_seconds: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._limits = dict(limits)
        self._window = window_seconds
        self._clock = clock
        self._counts: dict[tuple[str, int], int] = {}

    def _bucket(self) -> int:
        return int(self._clock() // self._window)

    def _prune(self, current: int) -> None:
        for key in [k for k in self._counts if k[1] < current]:
            del self._counts[key]

    def remaining(self, category: str) -> int | None:
        """Acquisitions left in the current bucket (None if unlimited)."""
        limit = self._limits.get(category)
        if limit is None:
            return None
        return max(limit - self._counts.get((category, self._bucket()), 0), 0)

    def try_acquire(self, category: str) -> bool:
        """Consume one slot for ``category``. False when the bucket is full."""
        bucket = self._bucket()
        self._prune(bucket)
        limit = self._limits.get(category)
        if limit is None:
            return True
        key = (category, bucket)
        count = self._counts.get(key, 0)
        if count >= limit:
            logger.debug("rate_limit_reached", category=category, limit=limit)
            return False
        self._counts[key] = count + 1
        return True
