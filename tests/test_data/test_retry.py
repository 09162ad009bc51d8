"""Tests for the retry_with_backoff decorator and the transient error classifier.

Verifies:
- A persistently transient failure is attempted exactly max_attempts times
- Delays double from the base and are capped
- Non-transient errors propagate after a single attempt
- Recovery on a later attempt returns the result
"""

import sqlite3
from unittest.mock import AsyncMock

import pytest

from tokentrader.data.retry import RetryPolicy, is_transient_error, retry_with_backoff
from tokentrader.exceptions import DatabaseNotConnectedError, TransientDatabaseError


class TestRetryPolicy:
    """Delay schedule."""

    def test_default_schedule(self) -> None:
        policy = RetryPolicy()
        assert [policy.delay_for(a) for a in range(3)] == [0.1, 0.2, 0.4]

    def test_delay_is_capped(self) -> None:
        policy = RetryPolicy(base_delay=0.1, max_delay=2.0)
        assert policy.delay_for(10) == 2.0


class TestIsTransientError:
    """Classifier predicate."""

    @pytest.mark.parametrize(
        "exc",
        [
            TransientDatabaseError("x"),
            DatabaseNotConnectedError("database connection is not open"),
            sqlite3.OperationalError("database is locked"),
            sqlite3.OperationalError("unable to open database file"),
            sqlite3.ProgrammingError("Cannot operate on a closed database."),
        ],
    )
    def test_transient(self, exc: Exception) -> None:
        assert is_transient_error(exc)

    @pytest.mark.parametrize(
        "exc",
        [
            sqlite3.OperationalError("no such table: trades"),
            sqlite3.IntegrityError("UNIQUE constraint failed"),
            ValueError("bad"),
        ],
    )
    def test_not_transient(self, exc: Exception) -> None:
        assert not is_transient_error(exc)


class TestRetryWithBackoff:
    """Decorator behaviour with sleep mocked out."""

    @pytest.mark.asyncio
    async def test_exhausts_exactly_three_attempts(self) -> None:
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=DatabaseNotConnectedError("database connection is not open"))
        wrapped = retry_with_backoff(sleep=sleep)(operation)

        with pytest.raises(DatabaseNotConnectedError):
            await wrapped()

        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_non_transient_error_is_not_retried(self) -> None:
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=sqlite3.IntegrityError("UNIQUE constraint failed"))
        wrapped = retry_with_backoff(sleep=sleep)(operation)

        with pytest.raises(sqlite3.IntegrityError):
            await wrapped()

        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recovers_on_second_attempt(self) -> None:
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=[sqlite3.OperationalError("database is locked"), "ok"])
        wrapped = retry_with_backoff(sleep=sleep)(operation)

        assert await wrapped("arg", key="value") == "ok"
        assert operation.await_count == 2
        operation.assert_awaited_with("arg", key="value")

    @pytest.mark.asyncio
    async def test_custom_classifier_and_policy(self) -> None:
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=KeyError("k"))
        wrapped = retry_with_backoff(
            RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=3.0),
            is_transient=lambda exc: isinstance(exc, KeyError),
            sleep=sleep,
        )(operation)

        with pytest.raises(KeyError):
            await wrapped()

        assert operation.await_count == 5
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 3.0, 3.0]
