"""Tests for TradeStore and PersistenceGateway against a temporary SQLite file.

Verifies:
- Decimal round-trip through TEXT columns
- At most one open record per token (durable partial unique index)
- Close only matches an open record, and only once
- Open-record listing, last closed record and closed history ordering
- The gateway reopens a dropped connection on retry
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from tokentrader.data.database import TradeDatabase
from tokentrader.data.gateway import PersistenceGateway
from tokentrader.data.retry import RetryPolicy
from tokentrader.data.store import TradeStore
from tokentrader.exceptions import (
    DatabaseNotConnectedError,
    PositionAlreadyOpenError,
    RecordNotFoundError,
)

TOKEN = "So1TestMint1111111111111111111111111111111"


def _closed(record, sell_timestamp: float, price: str = "1.5"):
    sell_price = Decimal(price)
    return replace(
        record,
        sell_price=sell_price,
        sell_amount=record.buy_amount,
        sell_timestamp=sell_timestamp,
        sell_value_usd=record.buy_amount * sell_price,
        profit_usd=record.buy_amount * sell_price - record.buy_value_usd,
        profit_percent=Decimal("50"),
        market_cap_change=Decimal("0"),
        liquidity_change=Decimal("-100"),
        rapid_dump=False,
    )


class TestCreateAndRead:
    """Inserts and reads through the gateway."""

    @pytest.mark.asyncio
    async def test_round_trip_preserves_decimals(self, gateway: PersistenceGateway, make_record) -> None:
        record = make_record(buy_price=Decimal("0.000012345678901234"), buy_amount=Decimal("81000.5"))
        await gateway.create_trade(record)

        loaded = await gateway.get_open_trade(TOKEN)
        assert loaded is not None
        assert loaded.buy_price == Decimal("0.000012345678901234")
        assert loaded.buy_amount == Decimal("81000.5")
        assert loaded.sell_price is None
        assert loaded.is_open
        assert loaded.provisional is False

    @pytest.mark.asyncio
    async def test_second_open_record_rejected(self, gateway: PersistenceGateway, make_record) -> None:
        await gateway.create_trade(make_record(buy_timestamp=1.0))

        with pytest.raises(PositionAlreadyOpenError):
            await gateway.create_trade(make_record(buy_timestamp=2.0))

        assert len(await gateway.get_open_trades()) == 1

    @pytest.mark.asyncio
    async def test_open_trades_skip_zero_price(self, gateway: PersistenceGateway, make_record) -> None:
        await gateway.create_trade(make_record("A", buy_timestamp=2.0))
        await gateway.create_trade(make_record("B", buy_timestamp=1.0))
        await gateway.create_trade(make_record("C", buy_price=Decimal("0")))

        tokens = [r.token_address for r in await gateway.get_open_trades()]
        assert tokens == ["B", "A"]

    @pytest.mark.asyncio
    async def test_missing_token_reads_none(self, gateway: PersistenceGateway) -> None:
        assert await gateway.get_open_trade("unknown") is None
        assert await gateway.get_last_closed_trade("unknown") is None


class TestClose:
    """Closing records."""

    @pytest.mark.asyncio
    async def test_close_then_reopen(self, gateway: PersistenceGateway, make_record) -> None:
        record = make_record(buy_timestamp=100.0)
        await gateway.create_trade(record)
        await gateway.close_trade(_closed(record, 200.0))

        assert await gateway.get_open_trade(TOKEN) is None
        last = await gateway.get_last_closed_trade(TOKEN)
        assert last is not None
        assert last.sell_timestamp == 200.0
        assert last.profit_usd == Decimal("5.0")
        assert last.liquidity_change == Decimal("-100")

        # A closed record no longer blocks a new open one.
        await gateway.create_trade(make_record(buy_timestamp=300.0))
        assert (await gateway.get_open_trade(TOKEN)).buy_timestamp == 300.0

    @pytest.mark.asyncio
    async def test_close_twice_raises(self, gateway: PersistenceGateway, make_record) -> None:
        record = make_record()
        await gateway.create_trade(record)
        await gateway.close_trade(_closed(record, 10.0))

        with pytest.raises(RecordNotFoundError):
            await gateway.close_trade(_closed(record, 20.0))

    @pytest.mark.asyncio
    async def test_history_ordering(self, gateway: PersistenceGateway, make_record) -> None:
        for i in range(3):
            record = make_record(buy_timestamp=float(i * 10))
            await gateway.create_trade(record)
            await gateway.close_trade(_closed(record, float(i * 10 + 5)))

        recent = await gateway.get_recent_trades(TOKEN, since=10.0)
        assert [r.sell_timestamp for r in recent] == [25.0, 15.0]

        closed = await gateway.get_closed_trades(limit=2)
        assert [r.sell_timestamp for r in closed] == [25.0, 15.0]


class TestReconnect:
    """Retry and reconnect behaviour."""

    @pytest.mark.asyncio
    async def test_reconnects_closed_database(self, tmp_path, make_record) -> None:
        database = TradeDatabase(str(tmp_path / "trades.db"))
        await database.connect()
        gateway = PersistenceGateway(TradeStore(database), RetryPolicy(base_delay=0.0, max_delay=0.0))
        await gateway.create_trade(make_record())

        await database.close()
        assert not database.is_connected

        assert await gateway.get_open_trade(TOKEN) is not None
        assert database.is_connected
        await database.close()

    @pytest.mark.asyncio
    async def test_closed_database_without_gateway_raises(self, tmp_path) -> None:
        database = TradeDatabase(str(tmp_path / "trades.db"))
        with pytest.raises(DatabaseNotConnectedError):
            TradeStore(database).database.db

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes(self, tmp_path) -> None:
        async with TradeDatabase(str(tmp_path / "nested" / "trades.db")) as database:
            assert database.is_connected
        assert not database.is_connected
