"""Generic retry-with-backoff decorator for async callables.

A call that raises an error the classifier deems transient is retried with
exponential backoff (base delay doubling per attempt, capped). Any other
error propagates immediately. After the last attempt the last transient
error is re-raised unchanged.
"""

import asyncio
import functools
import sqlite3
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import ParamSpec, TypeVar

from tokentrader.exceptions import TransientDatabaseError
from tokentrader.logging import get_logger

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

#: Fragments of sqlite3.OperationalError messages that indicate a
#: connectivity problem rather than a bad statement.
_TRANSIENT_SQLITE_MESSAGES = (
    "database is locked",
    "database table is locked",
    "database is busy",
    "unable to open database",
    "disk i/o error",
    "connection is not open",
    "cannot operate on a closed database",
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: ``min(base_delay * 2**attempt, max_delay)``."""

    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds after the zero-based ``attempt`` failed."""
        return min(self.base_delay * (2**attempt), self.max_delay)


def is_transient_error(exc: BaseException) -> bool:
    """Classify an exception as a transient persistence failure."""
    if isinstance(exc, TransientDatabaseError):
        return True
    if isinstance(exc, (sqlite3.OperationalError, sqlite3.ProgrammingError)):
        message = str(exc).lower()
        return any(fragment in message for fragment in _TRANSIENT_SQLITE_MESSAGES)
    return False


def retry_with_backoff(
    policy: RetryPolicy | None = None,
    is_transient: Callable[[BaseException], bool] = is_transient_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorate an async callable with retry on transient errors.

    Args:
        policy: Attempts and delays. Defaults to 3 attempts, 100ms doubling, 2s cap.
        is_transient: Predicate deciding whether an error is worth retrying.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        Decorator producing a wrapper with the same signature.
    """
    retry_policy = policy or RetryPolicy()

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    if not is_transient(exc):
                        raise
                    if attempt + 1 >= retry_policy.max_attempts:
                        logger.error(
                            "persistence_retries_exhausted",
                            operation=getattr(func, "__name__", repr(func)),
                            attempts=attempt + 1,
                            error=str(exc),
                        )
                        raise
                    delay = retry_policy.delay_for(attempt)
                    logger.warning(
                        "persistence_retry",
                        operation=getattr(func, "__name__", repr(func)),
                        attempt=attempt + 1,
                        max_attempts=retry_policy.max_attempts,
                        delay=delay,
                        error=str(exc),
                    )
                    await sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
