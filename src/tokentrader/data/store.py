"""Typed SQLite read/write abstraction for trade performance records.

Provides TradeStore with typed methods for inserting, closing and querying
TradePerformanceRecord rows. All SQL is isolated behind this interface.
The store does no retrying; PersistenceGateway wraps every call.

CRITICAL: All monetary values stored as TEXT in SQLite, restored as Decimal on read.
"""

from decimal import Decimal

import aiosqlite

from tokentrader.data.database import TradeDatabase
from tokentrader.logging import get_logger
from tokentrader.models import TradePerformanceRecord

logger = get_logger(__name__)

_COLUMNS = (
    "token_address, recommender_id, buy_price, buy_amount, buy_timestamp, "
    "buy_value_usd, buy_market_cap, buy_liquidity, sell_price, sell_amount, "
    "sell_timestamp, sell_value_usd, profit_usd, profit_percent, "
    "market_cap_change, liquidity_change, rapid_dump, provisional"
)

_OPEN = "sell_timestamp IS NULL"


def _text(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _dec(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _row_to_record(row: aiosqlite.Row | tuple) -> TradePerformanceRecord:
    return TradePerformanceRecord(
        token_address=row[0],
        recommender_id=row[1],
        buy_price=Decimal(row[2]),
        buy_amount=Decimal(row[3]),
        buy_timestamp=row[4],
        buy_value_usd=Decimal(row[5]),
        buy_market_cap=Decimal(row[6]),
        buy_liquidity=Decimal(row[7]),
        sell_price=_dec(row[8]),
        sell_amount=_dec(row[9]),
        sell_timestamp=row[10],
        sell_value_usd=_dec(row[11]),
        profit_usd=_dec(row[12]),
        profit_percent=_dec(row[13]),
        market_cap_change=_dec(row[14]),
        liquidity_change=_dec(row[15]),
        rapid_dump=bool(row[16]),
        provisional=bool(row[17]),
    )


class TradeStore:
    """Async SQLite store for trade performance records.

    Wraps TradeDatabase with typed read/write methods. All SQL access
    goes through self._database.db (the aiosqlite Connection).

    Usage:
        async with TradeDatabase("data/trades.db") as database:
            store = TradeStore(database)
            await store.insert_trade(record)
    """

    def __init__(self, database: TradeDatabase) -> None:
        self._database = database

    @property
    def database(self) -> TradeDatabase:
        return self._database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def insert_trade(self, record: TradePerformanceRecord) -> None:
        """Insert a new (open) record.

        Raises sqlite3.IntegrityError when the token already has an open
        record or the compound key already exists.
        """
        await self._database.db.execute(
            f"INSERT INTO trades ({_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.token_address,
                record.recommender_id,
                str(record.buy_price),
                str(record.buy_amount),
                record.buy_timestamp,
                str(record.buy_value_usd),
                str(record.buy_market_cap),
                str(record.buy_liquidity),
                _text(record.sell_price),
                _text(record.sell_amount),
                record.sell_timestamp,
                _text(record.sell_value_usd),
                _text(record.profit_usd),
                _text(record.profit_percent),
                _text(record.market_cap_change),
                _text(record.liquidity_change),
                1 if record.rapid_dump else 0,
                1 if record.provisional else 0,
            ),
        )
        await self._database.db.commit()
        logger.debug(
            "trade_inserted",
            token_address=record.token_address,
            buy_timestamp=record.buy_timestamp,
        )

    async def close_trade(self, record: TradePerformanceRecord) -> int:
        """Write the sell side of an open record.

        The update only matches while the row is still open, so a record can
        be closed at most once. Returns the number of rows updated (0 or 1).
        """
        cursor = await self._database.db.execute(
            "UPDATE trades SET sell_price = ?, sell_amount = ?, sell_timestamp = ?, "
            "sell_value_usd = ?, profit_usd = ?, profit_percent = ?, "
            "market_cap_change = ?, liquidity_change = ?, rapid_dump = ? "
            f"WHERE token_address = ? AND recommender_id = ? AND buy_timestamp = ? AND {_OPEN}",
            (
                _text(record.sell_price),
                _text(record.sell_amount),
                record.sell_timestamp,
                _text(record.sell_value_usd),
                _text(record.profit_usd),
                _text(record.profit_percent),
                _text(record.market_cap_change),
                _text(record.liquidity_change),
                1 if record.rapid_dump else 0,
                record.token_address,
                record.recommender_id,
                record.buy_timestamp,
            ),
        )
        await self._database.db.commit()
        return cursor.rowcount

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_open_trade(self, token_address: str) -> TradePerformanceRecord | None:
        """Return the token's open record, or None."""
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM trades WHERE token_address = ? AND {_OPEN} "
            "ORDER BY buy_timestamp DESC LIMIT 1",
            (token_address,),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    async def get_open_trades(self) -> list[TradePerformanceRecord]:
        """Return all open records with a positive buy price, oldest first."""
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM trades "
            f"WHERE {_OPEN} AND CAST(buy_price AS REAL) > 0 "
            "ORDER BY buy_timestamp ASC"
        )
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def get_last_closed_trade(
        self, token_address: str
    ) -> TradePerformanceRecord | None:
        """Return the token's most recently closed record, or None."""
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM trades "
            "WHERE token_address = ? AND sell_timestamp IS NOT NULL "
            "ORDER BY sell_timestamp DESC LIMIT 1",
            (token_address,),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    async def get_recent_trades(
        self, token_address: str, since: float
    ) -> list[TradePerformanceRecord]:
        """Return the token's records closed at or after ``since``, newest first."""
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM trades "
            "WHERE token_address = ? AND sell_timestamp >= ? "
            "ORDER BY sell_timestamp DESC",
            (token_address, since),
        )
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def get_closed_trades(self, limit: int = 50) -> list[TradePerformanceRecord]:
        """Return the most recently closed records across all tokens."""
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM trades WHERE sell_timestamp IS NOT NULL "
            "ORDER BY sell_timestamp DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]
