"""Retryable persistence gateway: the only reader/writer of trade records.

Every TradeStore call goes through the same retry_with_backoff wrapper.
Before each attempt the gateway reopens a dropped connection, so a
"connection is not open" failure heals on the next attempt. Lifecycle code
never caches records; "is there an open position for token X" is always
answered here.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Awaitable, Callable
from typing import Any

from tokentrader.data.retry import RetryPolicy, retry_with_backoff
from tokentrader.data.store import TradeStore
from tokentrader.exceptions import PositionAlreadyOpenError, RecordNotFoundError
from tokentrader.logging import get_logger
from tokentrader.models import TradePerformanceRecord

logger = get_logger(__name__)


class PersistenceGateway:
    """Retry-wrapped access to the trade record store.

    Args:
        store: Typed SQL store.
        policy: Retry attempts and delays (default 3 attempts, 100ms doubling, 2s cap).
        sleep: Awaitable sleep used between retries, injectable for tests.
    """

    def __init__(
        self,
        store: TradeStore,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._call = retry_with_backoff(policy, sleep=sleep)(self._invoke)

    async def _invoke(self, operation: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        database = self._store.database
        if not database.is_connected:
            logger.warning("trade_db_reconnecting")
            await database.connect()
        return await operation(*args)

    # ──────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────

    async def get_open_trade(self, token_address: str) -> TradePerformanceRecord | None:
        return await self._call(self._store.get_open_trade, token_address)

    async def get_open_trades(self) -> list[TradePerformanceRecord]:
        return await self._call(self._store.get_open_trades)

    async def get_last_closed_trade(self, token_address: str) -> TradePerformanceRecord | None:
        return await self._call(self._store.get_last_closed_trade, token_address)

    async def get_recent_trades(
        self, token_address: str, since: float
    ) -> list[TradePerformanceRecord]:
        return await self._call(self._store.get_recent_trades, token_address, since)

    async def get_closed_trades(self, limit: int = 50) -> list[TradePerformanceRecord]:
        return await self._call(self._store.get_closed_trades, limit)

    # ──────────────────────────────────────────────
    # Writes
    # ──────────────────────────────────────────────

    async def create_trade(self, record: TradePerformanceRecord) -> TradePerformanceRecord:
        """Persist a new open record.

        Raises:
            PositionAlreadyOpenError: The token already has an open record.
        """
        try:
            await self._call(self._store.insert_trade, record)
        except sqlite3.IntegrityError as exc:
            raise PositionAlreadyOpenError(
                f"Open record already exists for {record.token_address}"
            ) from exc
        logger.info(
            "trade_record_created",
            token_address=record.token_address,
            buy_price=str(record.buy_price),
            buy_amount=str(record.buy_amount),
            provisional=record.provisional,
        )
        return record

    async def close_trade(self, record: TradePerformanceRecord) -> TradePerformanceRecord:
        """Persist the sell side of an open record.

        Raises:
            RecordNotFoundError: No open record matches the compound key.
        """
        updated = await self._call(self._store.close_trade, record)
        if updated == 0:
            raise RecordNotFoundError(
                f"No open record for {record.token_address} bought at {record.buy_timestamp}"
            )
        logger.info(
            "trade_record_closed",
            token_address=record.token_address,
            profit_usd=str(record.profit_usd),
            profit_percent=str(record.profit_percent),
            rapid_dump=record.rapid_dump,
        )
        return record
