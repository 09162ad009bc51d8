"""Shared test fixtures for the token trading engine."""

from collections.abc import Callable
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio

from tokentrader.config import AppSettings, DatabaseSettings, TradingSettings
from tokentrader.data.database import TradeDatabase
from tokentrader.data.gateway import PersistenceGateway
from tokentrader.data.retry import RetryPolicy
from tokentrader.data.store import TradeStore
from tokentrader.models import TokenMarketData, TradePerformanceRecord

TOKEN = "So1TestMint1111111111111111111111111111111"


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """Return AppSettings with test defaults (temp database, one-token watchlist)."""
    return AppSettings(
        log_level="DEBUG",
        trading=TradingSettings(watchlist=[TOKEN]),
        database=DatabaseSettings(db_path=str(tmp_path / "trades.db")),
    )


@pytest.fixture
def make_market() -> Callable[..., TokenMarketData]:
    """Factory for a healthy snapshot: passes trust and simulation checks by default."""

    def _make(token_address: str = TOKEN, **overrides: Any) -> TokenMarketData:
        fields: dict[str, Any] = {
            "price_usd": Decimal("1"),
            "price_native": Decimal("0.01"),
            "market_cap": Decimal("500000"),
            "fdv": Decimal("500000"),
            "liquidity_usd": Decimal("80000"),
            "volume_m5": Decimal("500"),
            "volume_h1": Decimal("5000"),
            "volume_h24": Decimal("60000"),
            "buys_m5": 10,
            "sells_m5": 2,
            "buys_h1": 50,
            "sells_h1": 20,
            "price_change_m5": Decimal("6"),
            "price_change_h24": Decimal("12"),
        }
        fields.update(overrides)
        return TokenMarketData(token_address=token_address, **fields)

    return _make


@pytest.fixture
def make_record() -> Callable[..., TradePerformanceRecord]:
    """Factory for an open record bought at 1 USD."""

    def _make(token_address: str = TOKEN, **overrides: Any) -> TradePerformanceRecord:
        fields: dict[str, Any] = {
            "recommender_id": "consensus-engine",
            "buy_price": Decimal("1"),
            "buy_amount": Decimal("10"),
            "buy_timestamp": 1_700_000_000.0,
            "buy_value_usd": Decimal("10"),
            "buy_market_cap": Decimal("500000"),
            "buy_liquidity": Decimal("80000"),
        }
        fields.update(overrides)
        return TradePerformanceRecord(token_address=token_address, **fields)

    return _make


@pytest_asyncio.fixture
async def trade_db(tmp_path):
    """Connected TradeDatabase on a temporary file."""
    database = TradeDatabase(str(tmp_path / "trades.db"))
    await database.connect()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def gateway(trade_db: TradeDatabase) -> PersistenceGateway:
    """PersistenceGateway over the temporary database with zero retry delay."""
    return PersistenceGateway(
        TradeStore(trade_db),
        RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0),
    )
