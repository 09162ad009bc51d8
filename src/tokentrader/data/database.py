"""Async SQLite database manager for trade record persistence.

Uses aiosqlite for non-blocking database operations with WAL mode
for concurrent read/write performance. The ``trades`` table carries a
partial unique index so the store itself refuses a second open record
for the same token.
"""

import os
from typing import Self

import aiosqlite

from tokentrader.exceptions import DatabaseNotConnectedError
from tokentrader.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS trades (
    token_address TEXT NOT NULL,
    recommender_id TEXT NOT NULL,
    buy_price TEXT NOT NULL,
    buy_amount TEXT NOT NULL,
    buy_timestamp REAL NOT NULL,
    buy_value_usd TEXT NOT NULL,
    buy_market_cap TEXT NOT NULL DEFAULT '0',
    buy_liquidity TEXT NOT NULL DEFAULT '0',
    sell_price TEXT,
    sell_amount TEXT,
    sell_timestamp REAL,
    sell_value_usd TEXT,
    profit_usd TEXT,
    profit_percent TEXT,
    market_cap_change TEXT,
    liquidity_change TEXT,
    rapid_dump INTEGER NOT NULL DEFAULT 0,
    provisional INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (token_address, recommender_id, buy_timestamp)
);
"""

_CREATE_INDEXES_SQL = """
CREATE UNIQUE INDEX IF NOT EXISTS idx_trades_one_open
    ON trades(token_address) WHERE sell_timestamp IS NULL;

CREATE INDEX IF NOT EXISTS idx_trades_token_sell
    ON trades(token_address, sell_timestamp);
"""


class TradeDatabase:
    """Async SQLite connection manager for trade records.

    Manages database lifecycle including schema creation, WAL mode
    configuration, and clean resource cleanup.

    Usage:
        async with TradeDatabase("data/trades.db") as database:
            await database.db.execute("SELECT ...")
    """

    def __init__(self, db_path: str = "data/trades.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises DatabaseNotConnectedError (transient) if not connected.
        """
        if self._connection is None:
            raise DatabaseNotConnectedError("database connection is not open")
        return self._connection

    async def connect(self) -> None:
        """Open database connection, configure pragmas, and create schema.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA busy_timeout=5000")

        await self._create_tables()
        await self._ensure_schema_version()

        logger.info("trade_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("trade_db_closed", db_path=self._db_path)

    async def _create_tables(self) -> None:
        assert self._connection is not None
        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.executescript(_CREATE_INDEXES_SQL)
        await self._connection.commit()

    async def _ensure_schema_version(self) -> None:
        assert self._connection is not None
        cursor = await self._connection.execute(
            "SELECT version FROM schema_version LIMIT 1"
        )
        row = await cursor.fetchone()
        if row is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            await self._connection.commit()
            logger.info("schema_version_set", version=SCHEMA_VERSION)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
